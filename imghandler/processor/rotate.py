import dataclasses
from typing import Sequence

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import (
    Action,
    ActionName,
    int_in_range,
    range_message,
    single_value
)

right_angles = {90: 'd90', 180: 'd180', 270: 'd270'}


@dataclasses.dataclass(eq=True, frozen=True)
class RotateOpts:
  degree: int


class RotateAction(Action[RotateOpts]):
  name = ActionName.ROTATE.value

  def validate(self, params: Sequence[str]) -> RotateOpts:
    v = single_value(self.name, params)
    if v is None:
      raise InvalidArgument('Rotate degree is required')
    return RotateOpts(degree=int_in_range(v, 0, 360, range_message('Rotate degree', 0, 360)))

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    degree = opts.degree % 360

    if degree == 0:
      return

    if degree in right_angles:
      ctx.image = ctx.image.rot(right_angles[degree])
    else:
      ctx.image = ctx.image.rotate(degree)
