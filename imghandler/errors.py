from http import HTTPStatus


class ImageHandlerError(Exception):
  status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

  def __init__(self, message: str):
    super().__init__(message)
    self.message = message


class MalformedRequest(ImageHandlerError):
  status = HTTPStatus.BAD_REQUEST


class UnknownAction(ImageHandlerError):
  status = HTTPStatus.BAD_REQUEST

  def __init__(self, name: str):
    super().__init__(f'Unknown action: "{name}"')
    self.name = name


class InvalidArgument(ImageHandlerError):
  status = HTTPStatus.BAD_REQUEST


class UpstreamFailure(ImageHandlerError):
  status = HTTPStatus.INTERNAL_SERVER_ERROR


class ObjectNotFound(UpstreamFailure):
  status = HTTPStatus.NOT_FOUND

  def __init__(self, key: str):
    super().__init__(f'Object not found: "{key}"')
    self.key = key


class ProcessTimeout(UpstreamFailure):
  status = HTTPStatus.GATEWAY_TIMEOUT
