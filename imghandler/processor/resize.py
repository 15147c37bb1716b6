import dataclasses
from enum import Enum
from typing import Optional, Sequence, Tuple

from pyvips import Extend, Image  # type: ignore

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import (
    Action,
    ActionName,
    int_in_range,
    iter_params,
    parse_color,
    range_message,
    unknown_param
)

MAX_SIDE = 16384
MAX_PERCENTAGE = 1000
DEFAULT_PAD_COLOR = (255, 255, 255)


class ResizeMode(Enum):
  LFIT = 'lfit'
  MFIT = 'mfit'
  FILL = 'fill'
  PAD = 'pad'
  FIXED = 'fixed'


@dataclasses.dataclass(eq=True, frozen=True)
class ResizeOpts:
  m: ResizeMode = ResizeMode.LFIT
  w: Optional[int] = None
  h: Optional[int] = None
  l: Optional[int] = None
  s: Optional[int] = None
  p: Optional[int] = None
  limit: bool = True
  color: Tuple[int, int, int] = DEFAULT_PAD_COLOR


def target_box(width: int, height: int, opts: ResizeOpts) -> Tuple[Optional[int], Optional[int]]:
  """Requested width and height, resolving the longest and shortest sides.

  Explicit ``w`` and ``h`` take precedence over ``l`` and ``s``.
  """
  w = opts.w
  h = opts.h

  if opts.l is not None:
    if width >= height:
      w = opts.l if w is None else w
    else:
      h = opts.l if h is None else h

  if opts.s is not None:
    if width <= height:
      w = opts.s if w is None else w
    else:
      h = opts.s if h is None else h

  return (w, h)


def calc_scale(width: int, height: int, w: Optional[int], h: Optional[int], mode: ResizeMode) -> float:
  scales = []
  if w is not None:
    scales.append(w / width)
  if h is not None:
    scales.append(h / height)

  if mode in [ResizeMode.LFIT, ResizeMode.PAD]:
    return min(scales)
  return max(scales)


def background_for(image: Image, color: Tuple[int, int, int]) -> list[float]:
  bands = image.bands - 1 if image.hasalpha() else image.bands
  if bands < 3:
    bg = [sum(color) / 3] * bands
  else:
    bg = [float(c) for c in color] + [0.0] * (bands - 3)
  if image.hasalpha():
    bg.append(255.0)
  return bg


class ResizeAction(Action[ResizeOpts]):
  name = ActionName.RESIZE.value

  def validate(self, params: Sequence[str]) -> ResizeOpts:
    opts = ResizeOpts()
    for k, v in iter_params(self.name, params):
      if k == 'm':
        try:
          opts = dataclasses.replace(opts, m=ResizeMode(v))
        except ValueError:
          raise InvalidArgument(f'Unknown resize mode: "{v}"') from None
      elif k == 'w':
        opts = dataclasses.replace(
            opts, w=int_in_range(v, 1, MAX_SIDE, range_message('Width', 1, MAX_SIDE)))
      elif k == 'h':
        opts = dataclasses.replace(
            opts, h=int_in_range(v, 1, MAX_SIDE, range_message('Height', 1, MAX_SIDE)))
      elif k == 'l':
        opts = dataclasses.replace(
            opts, l=int_in_range(v, 1, MAX_SIDE, range_message('Longest side', 1, MAX_SIDE)))
      elif k == 's':
        opts = dataclasses.replace(
            opts, s=int_in_range(v, 1, MAX_SIDE, range_message('Shortest side', 1, MAX_SIDE)))
      elif k == 'p':
        opts = dataclasses.replace(
            opts,
            p=int_in_range(
                v, 1, MAX_PERCENTAGE, range_message('Percentage', 1, MAX_PERCENTAGE)))
      elif k == 'limit':
        opts = dataclasses.replace(
            opts, limit=int_in_range(v, 0, 1, 'Limit must be 0 or 1') == 1)
      elif k == 'color':
        opts = dataclasses.replace(opts, color=parse_color(v))
      else:
        raise unknown_param(k)

    if all(x is None for x in [opts.w, opts.h, opts.l, opts.s, opts.p]):
      raise InvalidArgument('Resize needs one of w, h, l, s or p')

    return opts

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    image = ctx.image
    width = image.width
    height = image.height

    # A percentage scales regardless of the other parameters and the limit.
    if opts.p is not None:
      ctx.image = image.resize(opts.p / 100)
      return

    w, h = target_box(width, height, opts)

    if opts.m == ResizeMode.FIXED:
      if w is None:
        assert h is not None
        tw, th = max(1, round(width * h / height)), h
      elif h is None:
        tw, th = w, max(1, round(height * w / width))
      else:
        tw, th = w, h
      if opts.limit and (width < tw or height < th):
        return
      ctx.image = image.resize(tw / width, vscale=th / height)
      return

    scale = calc_scale(width, height, w, h, opts.m)
    if opts.limit and 1 < scale:
      return

    if scale != 1:
      image = image.resize(scale)

    if w is not None and h is not None:
      if opts.m == ResizeMode.FILL:
        cw = min(w, image.width)
        ch = min(h, image.height)
        image = image.extract_area((image.width - cw) // 2, (image.height - ch) // 2, cw, ch)
      elif opts.m == ResizeMode.PAD:
        image = image.embed((w - image.width) // 2, (h - image.height) // 2,
                            w,
                            h,
                            extend=Extend.BACKGROUND,
                            background=background_for(image, opts.color))

    ctx.image = image
