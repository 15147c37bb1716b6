import dataclasses
import logging
from typing import Mapping

DEFAULT_RESP_MAX_AGE = 365 * 24 * 60 * 60
DEFAULT_ERROR_MAX_AGE = 10
DEFAULT_PROCESS_TIMEOUT = 25.0


def parse_bool(s: str) -> bool:
  return s.strip().lower() in ['1', 'true', 'yes', 'on']


@dataclasses.dataclass(eq=True, frozen=True)
class Config:
  region: str
  src_bucket: str
  src_dir: str
  resp_max_age: int
  error_max_age: int
  auto_webp: bool
  bypass_patterns: str
  process_timeout: float
  log_level: int

  @classmethod
  def from_env(cls, environ: Mapping[str, str]) -> 'Config':
    """Read the configuration from environment variables.

    ``SRC_BUCKET`` and ``REGION`` are required unless ``SRC_DIR`` is set.
    Raises ``KeyError`` for a missing required variable and ``ValueError``
    for an unparseable one.
    """
    src_dir = environ.get('SRC_DIR', '')
    if src_dir == '':
      region = environ['REGION']
      src_bucket = environ['SRC_BUCKET']
    else:
      region = environ.get('REGION', '')
      src_bucket = environ.get('SRC_BUCKET', '')

    log_level = logging.getLevelName(environ.get('LOG_LEVEL', 'DEBUG').upper())
    if not isinstance(log_level, int):
      raise ValueError(f'invalid LOG_LEVEL: {environ["LOG_LEVEL"]}')

    return cls(
        region=region,
        src_bucket=src_bucket,
        src_dir=src_dir,
        resp_max_age=int(environ.get('RESP_MAX_AGE', DEFAULT_RESP_MAX_AGE)),
        error_max_age=int(environ.get('ERROR_MAX_AGE', DEFAULT_ERROR_MAX_AGE)),
        auto_webp=parse_bool(environ.get('AUTO_WEBP', 'false')),
        bypass_patterns=environ.get('BYPASS_PATTERNS', ''),
        process_timeout=float(environ.get('PROCESS_TIMEOUT', DEFAULT_PROCESS_TIMEOUT)),
        log_level=log_level)

  @property
  def cache_control(self) -> str:
    return f'public, max-age={self.resp_max_age}'

  @property
  def error_cache_control(self) -> str:
    return f'public, max-age={self.error_max_age}'
