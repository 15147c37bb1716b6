import dataclasses
from typing import Sequence

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import Action, ActionName, int_in_range, single_value

MESSAGE = 'Auto orient must be 0 or 1'


@dataclasses.dataclass(eq=True, frozen=True)
class AutoOrientOpts:
  auto: bool


class AutoOrientAction(Action[AutoOrientOpts]):
  name = ActionName.AUTO_ORIENT.value

  def validate(self, params: Sequence[str]) -> AutoOrientOpts:
    v = single_value(self.name, params)
    if v is None:
      raise InvalidArgument(MESSAGE)
    return AutoOrientOpts(auto=int_in_range(v, 0, 1, MESSAGE) == 1)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    if opts.auto:
      ctx.image = ctx.image.autorot()
