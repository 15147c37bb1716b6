"""Request parsing.

The object key is the request path without its leading ``/``. The action
chain travels in the ``x-oss-process`` query parameter::

  GET /photos/cat.jpg?x-oss-process=image/resize,w_200/quality,q_50

The chain is split on ``/`` into raw directives, keeping their order. The first
directive names the processor namespace (``image``).
"""
import dataclasses
from typing import Mapping
from urllib import parse

from imghandler.errors import MalformedRequest
from imghandler.typing import ObjectKey

PROCESS_QUERY = 'x-oss-process'
CHAIN_DELIMITER = '/'
PARAM_DELIMITER = ','


@dataclasses.dataclass(frozen=True)
class ParsedRequest:
  key: ObjectKey
  actions: tuple[str, ...]
  query: Mapping[str, str] = dataclasses.field(default_factory=dict)


def split_directive(directive: str) -> tuple[str, ...]:
  return tuple(directive.split(PARAM_DELIMITER))


def parse_query(qstr: str) -> dict[str, str]:
  try:
    qs = parse.parse_qs(qstr, keep_blank_values=True, errors='strict')
  except (UnicodeDecodeError, ValueError) as e:
    raise MalformedRequest(f'Malformed query string: {e}') from e
  return {k: v[0] for k, v in qs.items()}


def key_from_path(raw_path: str) -> ObjectKey:
  try:
    key = parse.unquote(raw_path.removeprefix('/'), errors='strict')
  except UnicodeDecodeError as e:
    raise MalformedRequest('Malformed object key') from e

  if key == '' or key.endswith('/'):
    raise MalformedRequest('Empty object key')

  if '..' in key.split('/'):
    raise MalformedRequest('Invalid object key')

  return ObjectKey(key)


def parse_request(raw_path: str, raw_query: Mapping[str, str]) -> ParsedRequest:
  key = key_from_path(raw_path)

  chain = raw_query.get(PROCESS_QUERY, '')
  if not chain.isprintable():
    raise MalformedRequest('Malformed action chain')

  actions = tuple(a for a in chain.split(CHAIN_DELIMITER) if a != '')
  query = {k: v for k, v in raw_query.items() if k != PROCESS_QUERY}

  return ParsedRequest(key=key, actions=actions, query=query)
