from typing import NewType, NotRequired, TypedDict

HttpPath = NewType('HttpPath', str)
ObjectKey = NewType('ObjectKey', str)


class HttpContext(TypedDict):
  method: str
  path: HttpPath
  protocol: str
  sourceIp: str
  userAgent: str


class RequestContext(TypedDict):
  accountId: str
  apiId: str
  domainName: str
  requestId: str
  routeKey: str
  stage: str
  time: str
  timeEpoch: int
  http: HttpContext


class APIGatewayProxyEventV2(TypedDict):
  version: str
  routeKey: str
  rawPath: HttpPath
  rawQueryString: str
  headers: dict[str, str]
  queryStringParameters: NotRequired[dict[str, str]]
  requestContext: NotRequired[RequestContext]
  body: NotRequired[str]
  isBase64Encoded: bool


class ProxyResult(TypedDict):
  statusCode: int
  headers: dict[str, str]
  body: str
  isBase64Encoded: bool
