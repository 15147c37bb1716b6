import asyncio
import base64
import dataclasses
import os
import time
from http import HTTPStatus
from logging import Logger
from typing import Any, Mapping, Optional

import boto3
from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern

from imghandler.config import Config
from imghandler.context import Feature, ImageContext
from imghandler.errors import ImageHandlerError, ProcessTimeout
from imghandler.logs import RequestLogger, init_logging
from imghandler.processor.index import ImageProcessor, default_registry
from imghandler.request import parse_query, parse_request
from imghandler.store import (
    BufferObject,
    BufferStore,
    DirectAccess,
    LocalStore,
    S3Store
)
from imghandler.typing import APIGatewayProxyEventV2, HttpPath, ObjectKey, ProxyResult

DIRECT_ACCESS_MESSAGE = 'Please visit s3 directly'
TEXT_MIME = 'text/plain; charset=utf-8'

logger = init_logging(__name__)


@dataclasses.dataclass(frozen=True)
class InstantResponse:
  status: int
  body: bytes
  cache_control: str
  content_type: str
  vips_us: Optional[int]
  img_size: Optional[int]


def no_transform(key: ObjectKey) -> DirectAccess:
  # The edge falls back to the origin bucket on 403.
  return DirectAccess(key=key, reason='no transform requested')


def bypass_pattern(key: ObjectKey) -> DirectAccess:
  return DirectAccess(key=key, reason='bypass pattern matched')


class ImageHandler:
  instances: dict[Config, 'ImageHandler'] = {}

  def __init__(
      self,
      log: Logger,
      config: Config,
      store: BufferStore,
      processor: ImageProcessor,
      bypass_path_spec: Optional[PathSpec],
  ):
    self.log = log
    self.config = config
    self.store = store
    self.processor = processor
    self.bypass_path_spec = bypass_path_spec

  @classmethod
  def from_config(cls, log: Logger, config: Config) -> 'ImageHandler':
    if config.src_dir != '':
      store: BufferStore = LocalStore(config.src_dir)
    else:
      store = S3Store(boto3.client('s3', region_name=config.region), config.src_bucket)

    path_spec = (
        None if config.bypass_patterns == '' else PathSpec.from_lines(
            GitWildMatchPattern, config.bypass_patterns.split(',')))

    return cls(
        log=log,
        config=config,
        store=store,
        processor=ImageProcessor(default_registry()),
        bypass_path_spec=path_spec)

  @classmethod
  def from_env(cls, log: Logger, environ: Mapping[str, str]) -> Optional['ImageHandler']:
    try:
      config = Config.from_env(environ)
    except KeyError as e:
      log.warning({
          'message': 'environment variable not found',
          'key': str(e),
      })
      return None
    except ValueError as e:
      log.warning({
          'message': 'invalid environment variable',
          'reason': str(e),
      })
      return None

    if config not in cls.instances:
      log.setLevel(config.log_level)
      cls.instances[config] = cls.from_config(log, config)

    return cls.instances[config]

  def features_for(self, accept_header: str) -> dict[str, Any]:
    features: dict[str, Any] = {}
    if self.config.auto_webp and 'image/webp' in accept_header:
      features[Feature.AUTO_WEBP.value] = True
    return features

  async def run(
      self,
      rlog: RequestLogger,
      path: HttpPath,
      query: Mapping[str, str],
      accept_header: str,
  ) -> InstantResponse | DirectAccess:
    req = parse_request(path, query)

    if self.bypass_path_spec is not None and self.bypass_path_spec.match_file(req.key):
      return await self.store.get(req.key, bypass_pattern)

    if not self.processor.has_actions(req.actions):
      return await self.store.get(req.key, no_transform)

    # Reject bad chains before paying for the fetch.
    self.processor.validate(req.actions)

    obj = await self.store.get(req.key)
    assert isinstance(obj, BufferObject)

    ctx = await ImageContext.from_object(
        obj, self.store, rlog, self.features_for(accept_header), req.query)
    await self.processor.process(ctx, req.actions)

    start_ns = time.time_ns()
    encoded = await ctx.encode()
    vips_us = (time.time_ns() - start_ns) // 1000

    return InstantResponse(
        status=HTTPStatus.OK,
        body=encoded.buffer,
        cache_control=self.config.cache_control,
        content_type=encoded.format.mime(),
        vips_us=vips_us,
        img_size=len(encoded.buffer))

  async def process(
      self,
      rlog: RequestLogger,
      path: HttpPath,
      qstr: str,
      accept_header: str,
  ) -> InstantResponse | DirectAccess:
    try:
      async with asyncio.timeout(self.config.process_timeout):
        return await self.run(rlog, path, parse_query(qstr), accept_header)
    except TimeoutError as e:
      raise ProcessTimeout(f'processing took longer than {self.config.process_timeout}s') from e


def text_result(status: int, message: str, cache_control: str) -> ProxyResult:
  return {
      'statusCode': status,
      'headers': {
          'content-type': TEXT_MIME,
          'cache-control': cache_control,
      },
      'body': message,
      'isBase64Encoded': False,
  }


def lambda_main(event: APIGatewayProxyEventV2) -> ProxyResult:
  path = event['rawPath']
  qstr = event.get('rawQueryString', '')
  accept_header = event.get('headers', {}).get('accept', '')

  rlog = RequestLogger.for_request(logger, path, qstr, accept_header)

  server = ImageHandler.from_env(logger, os.environ)
  if server is None:
    return text_result(HTTPStatus.INTERNAL_SERVER_ERROR, 'Internal Server Error', 'no-store')

  try:
    result = asyncio.run(server.process(rlog, path, qstr, accept_header))
  except ImageHandlerError as e:
    if e.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
      rlog.log_error('failed to process', {'reason': e.message, 'status': e.status})
      # Engine and store details stay in the log.
      return text_result(
          e.status, HTTPStatus(e.status).phrase, server.config.error_cache_control)

    rlog.log_debug('rejected', {'reason': e.message, 'status': e.status})
    return text_result(e.status, e.message, server.config.error_cache_control)
  except Exception as e:
    rlog.log_error('error during process()', {'reason': str(e)})
    return text_result(
        HTTPStatus.INTERNAL_SERVER_ERROR, 'Internal Server Error',
        server.config.error_cache_control)

  if isinstance(result, DirectAccess):
    rlog.log_debug('direct access', {'key': result.key, 'reason': result.reason})
    return text_result(HTTPStatus.FORBIDDEN, DIRECT_ACCESS_MESSAGE, server.config.error_cache_control)

  rlog.log_debug(
      'responded', {
          'status': result.status,
          'cache_control': result.cache_control,
          'content_type': result.content_type,
          'img_size': result.img_size,
          'vips_us': result.vips_us,
      })

  return {
      'statusCode': result.status,
      'headers': {
          'content-type': result.content_type,
          'cache-control': result.cache_control,
      },
      'body': base64.b64encode(result.body).decode(),
      'isBase64Encoded': True,
  }
