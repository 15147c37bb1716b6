import datetime
import logging
import sys
from logging import Logger
from typing import Any

from pythonjsonlogger.jsonlogger import JsonFormatter

import imghandler


class MyJsonFormatter(JsonFormatter):

  def __init__(self) -> None:
    super().__init__(json_ensure_ascii=False)

  def add_fields(self, log_record: Any, record: Any, message_dict: Any) -> None:
    log_record['_ts'] = datetime.datetime.now(datetime.UTC).strftime('%Y-%m-%dT%H:%M:%S.%fZ')

    if log_record.get('level'):
      log_record['level'] = log_record['level'].upper()
    else:
      log_record['level'] = record.levelname

    log_record['version'] = imghandler.version

    super().add_fields(log_record, record, message_dict)


def init_logging(name: str, level: int = logging.DEBUG) -> Logger:
  # https://stackoverflow.com/a/11548754/1160341
  logger = logging.getLogger()
  logger.setLevel(level)
  for h in logger.handlers:
    logger.removeHandler(h)

  logging.getLogger('botocore').setLevel(logging.WARNING)
  logging.getLogger('urllib3').setLevel(logging.INFO)
  logging.getLogger('pyvips').setLevel(logging.WARNING)

  log = logging.getLogger(name)
  log_handler = logging.StreamHandler()
  log_handler.setFormatter(MyJsonFormatter())
  log_handler.setLevel(level)
  log_handler.setStream(sys.stderr)
  log.addHandler(log_handler)
  log.propagate = False

  return log


class RequestLogger:
  """Logger bound to the context of a single request.

  Every record is a dict with a ``message`` key, the request context and the
  fields passed by the caller.
  """

  def __init__(self, log: Logger, context: dict[str, Any]):
    self.log = log
    self.context = context

  @classmethod
  def for_request(cls, log: Logger, path: str, qstr: str, accept_header: str) -> 'RequestLogger':
    return cls(log, {'path': path, 'qstr': qstr, 'accept_header': accept_header})

  def log_warning(self, message: str, dict: dict[str, Any]) -> None:
    self.log.warning({
        'message': message,
        **self.context,
        **dict,
    })

  def log_debug(self, message: str, dict: dict[str, Any]) -> None:
    self.log.debug({
        'message': message,
        **self.context,
        **dict,
    })

  def log_error(self, message: str, dict: dict[str, Any]) -> None:
    self.log.error({
        'message': message,
        **self.context,
        **dict,
    })
