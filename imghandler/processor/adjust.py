import dataclasses
from typing import Callable, Sequence

from pyvips import Image  # type: ignore

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import (
    Action,
    ActionName,
    int_in_range,
    range_message,
    single_value
)


@dataclasses.dataclass(eq=True, frozen=True)
class AdjustOpts:
  value: int


def map_colour(image: Image, fn: Callable[[Image], Image]) -> Image:
  """Apply ``fn`` to the colour bands only, leaving alpha untouched."""
  if image.hasalpha():
    alpha = image[image.bands - 1]
    colour = image.extract_band(0, n=image.bands - 1)
    return fn(colour).cast(image.format).bandjoin(alpha)
  return fn(image).cast(image.format)


def bounded_value(name: str, field: str, params: Sequence[str], lower: int, upper: int) -> int:
  v = single_value(name, params)
  if v is None:
    raise InvalidArgument(f'{field} is required')
  return int_in_range(v, lower, upper, range_message(field, lower, upper))


class BrightAction(Action[AdjustOpts]):
  name = ActionName.BRIGHT.value

  def validate(self, params: Sequence[str]) -> AdjustOpts:
    return AdjustOpts(value=bounded_value(self.name, 'Bright', params, -100, 100))

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    offset = opts.value * 255 / 100
    ctx.image = map_colour(ctx.image, lambda image: image.linear(1, offset))


class ContrastAction(Action[AdjustOpts]):
  name = ActionName.CONTRAST.value

  def validate(self, params: Sequence[str]) -> AdjustOpts:
    return AdjustOpts(value=bounded_value(self.name, 'Contrast', params, -100, 100))

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    factor = 1 + opts.value / 100
    # Pivot around mid grey.
    ctx.image = map_colour(ctx.image, lambda image: image.linear(factor, 128 * (1 - factor)))


class SharpenAction(Action[AdjustOpts]):
  name = ActionName.SHARPEN.value

  def validate(self, params: Sequence[str]) -> AdjustOpts:
    return AdjustOpts(value=bounded_value(self.name, 'Sharpen', params, 50, 399))

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    ctx.image = ctx.image.sharpen(sigma=opts.value / 100)
