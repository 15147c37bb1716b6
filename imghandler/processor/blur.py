import dataclasses
import math
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


@dataclasses.dataclass(eq=True, frozen=True)
class BlurOpts:
  r: int
  s: int


def gaussian_mask(radius: int, sigma: int) -> Image:
  """Normalised 1-D Gaussian of ``2 * radius + 1`` taps, for ``convsep``."""
  weights = [math.exp(-(x * x) / (2 * sigma * sigma)) for x in range(-radius, radius + 1)]
  return Image.new_from_array([weights], scale=sum(weights))


class BlurAction(Action[BlurOpts]):
  name = ActionName.BLUR.value

  def validate(self, params: Sequence[str]) -> BlurOpts:
    r: Optional[int] = None
    s: Optional[int] = None
    for k, v in iter_params(self.name, params):
      if k == 'r':
        r = int_in_range(v, 1, 50, range_message('Blur radius', 1, 50))
      elif k == 's':
        s = int_in_range(v, 1, 50, range_message('Blur sigma', 1, 50))
      else:
        raise unknown_param(k)

    if r is None or s is None:
      raise InvalidArgument('Blur needs both r and s')

    return BlurOpts(r=r, s=s)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    image = ctx.image
    blurred = image.convsep(gaussian_mask(opts.r, opts.s), precision='float')
    ctx.image = blurred.cast(image.format)
