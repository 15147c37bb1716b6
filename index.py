from aws_lambda_powertools.utilities.typing import LambdaContext

from imghandler.handler import index as handler
from imghandler.typing import APIGatewayProxyEventV2, ProxyResult


def lambda_handler(
    event: APIGatewayProxyEventV2,
    _: LambdaContext,
) -> ProxyResult:
  # # For debugging
  # print('event:')
  # print(json.dumps(event))

  ret = handler.lambda_main(event)

  # # For debugging
  # print('return:')
  # print(json.dumps(ret))

  return ret
