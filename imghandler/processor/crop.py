import dataclasses
from typing import Optional, Sequence

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import (
    Action,
    ActionName,
    Gravity,
    int_in_range,
    iter_params,
    range_message,
    unknown_param
)

MAX_COORD = 16384


@dataclasses.dataclass(eq=True, frozen=True)
class CropOpts:
  w: Optional[int] = None
  h: Optional[int] = None
  x: int = 0
  y: int = 0
  g: Gravity = Gravity.NW


@dataclasses.dataclass(eq=True, frozen=True)
class CropArea:
  x: int
  y: int
  width: int
  height: int


def calc_crop_area(width: int, height: int, opts: CropOpts) -> Optional[CropArea]:
  """Area to extract, clipped to the image. None if it starts outside."""
  w = width if opts.w is None else opts.w
  h = height if opts.h is None else opts.h

  x, y = opts.g.origin(width, height, w, h, opts.x, opts.y)

  right = min(width, x + w)
  bottom = min(height, y + h)
  x = max(0, x)
  y = max(0, y)

  if width <= x or height <= y or right <= x or bottom <= y:
    return None

  return CropArea(x, y, right - x, bottom - y)


class CropAction(Action[CropOpts]):
  name = ActionName.CROP.value

  def validate(self, params: Sequence[str]) -> CropOpts:
    opts = CropOpts()
    for k, v in iter_params(self.name, params):
      if k == 'w':
        opts = dataclasses.replace(
            opts, w=int_in_range(v, 1, MAX_COORD, range_message('Width', 1, MAX_COORD)))
      elif k == 'h':
        opts = dataclasses.replace(
            opts, h=int_in_range(v, 1, MAX_COORD, range_message('Height', 1, MAX_COORD)))
      elif k == 'x':
        opts = dataclasses.replace(
            opts, x=int_in_range(v, 0, MAX_COORD, range_message('X', 0, MAX_COORD)))
      elif k == 'y':
        opts = dataclasses.replace(
            opts, y=int_in_range(v, 0, MAX_COORD, range_message('Y', 0, MAX_COORD)))
      elif k == 'g':
        opts = dataclasses.replace(opts, g=Gravity.parse(v))
      else:
        raise unknown_param(k)
    return opts

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    image = ctx.image

    area = calc_crop_area(image.width, image.height, opts)
    if area is None:
      raise InvalidArgument('Incorrect crop param: area is out of the image')

    ctx.image = image.extract_area(area.x, area.y, area.width, area.height)
