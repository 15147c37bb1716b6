import dataclasses
from typing import Optional, Sequence

from pyvips import Image  # type: ignore

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import (
    Action,
    ActionName,
    int_in_range,
    iter_params,
    range_message,
    unknown_param
)

MAX_RADIUS = 8192


@dataclasses.dataclass(eq=True, frozen=True)
class CircleOpts:
  r: int


class CircleAction(Action[CircleOpts]):
  """Cut out the centred circle. The outside becomes transparent.

  Formats without alpha are flattened on white when encoding.
  """
  name = ActionName.CIRCLE.value

  def validate(self, params: Sequence[str]) -> CircleOpts:
    r: Optional[int] = None
    for k, v in iter_params(self.name, params):
      if k == 'r':
        r = int_in_range(v, 1, MAX_RADIUS, range_message('Circle radius', 1, MAX_RADIUS))
      else:
        raise unknown_param(k)

    if r is None:
      raise InvalidArgument('Circle radius is required')

    return CircleOpts(r=r)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    image = ctx.image
    if image.hasalpha():
      image = image.extract_band(0, n=image.bands - 1)

    shortest = min(image.width, image.height)
    r = max(1, min(opts.r, shortest // 2))
    size = min(2 * r, shortest)

    image = image.extract_area((image.width - size) // 2, (image.height - size) // 2, size, size)
    mask = Image.black(size, size).draw_circle(255, r, r, r, fill=True)

    ctx.image = image.bandjoin(mask.cast(image.format))
