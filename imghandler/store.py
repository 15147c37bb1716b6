import asyncio
import dataclasses
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from botocore.exceptions import ClientError
from mypy_boto3_s3.client import S3Client

from imghandler.errors import ObjectNotFound, UpstreamFailure
from imghandler.typing import ObjectKey

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


@dataclasses.dataclass(frozen=True)
class BufferObject:
  buffer: bytes
  content_type: str


@dataclasses.dataclass(frozen=True)
class DirectAccess:
  """Tells the edge to serve ``key`` from the origin without this service."""
  key: ObjectKey
  reason: str


BypassFn = Callable[[ObjectKey], DirectAccess]


def is_not_found_client_error(exception: ClientError) -> bool:
  if 'Error' not in exception.response:
    return False
  if 'Code' not in exception.response['Error']:
    return False
  return exception.response['Error']['Code'] in ['404', 'NoSuchKey']


class BufferStore(ABC):

  async def get(
      self,
      key: ObjectKey,
      on_bypass: Optional[BypassFn] = None,
  ) -> BufferObject | DirectAccess:
    if on_bypass is not None:
      return on_bypass(key)
    return await self.fetch(key)

  @abstractmethod
  async def fetch(self, key: ObjectKey) -> BufferObject:
    ...


class S3Store(BufferStore):

  def __init__(self, s3: S3Client, bucket: str):
    self.s3 = s3
    self.bucket = bucket

  def get_object(self, key: ObjectKey) -> BufferObject:
    try:
      res = self.s3.get_object(Bucket=self.bucket, Key=key)
      buffer = res['Body'].read()
    except ClientError as e:
      if is_not_found_client_error(e):
        raise ObjectNotFound(key) from e
      raise UpstreamFailure(f'failed to get object: {key}') from e

    return BufferObject(buffer=buffer, content_type=res.get('ContentType', DEFAULT_CONTENT_TYPE))

  async def fetch(self, key: ObjectKey) -> BufferObject:
    return await asyncio.to_thread(self.get_object, key)


class LocalStore(BufferStore):

  def __init__(self, root: str | Path):
    self.root = Path(root).resolve()

  def path_of(self, key: ObjectKey) -> Path:
    path = (self.root / key).resolve()
    if not path.is_relative_to(self.root):
      raise ObjectNotFound(key)
    return path

  def read(self, key: ObjectKey) -> BufferObject:
    path = self.path_of(key)
    try:
      buffer = path.read_bytes()
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
      raise ObjectNotFound(key) from e
    except OSError as e:
      raise UpstreamFailure(f'failed to read object: {key}') from e

    content_type = mimetypes.guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
    return BufferObject(buffer=buffer, content_type=content_type)

  async def fetch(self, key: ObjectKey) -> BufferObject:
    return await asyncio.to_thread(self.read, key)
