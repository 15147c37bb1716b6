import dataclasses
from typing import Optional, Sequence, Tuple

from pyvips import Image  # type: ignore

from imghandler import engine
from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument
from imghandler.processor.action import (
    Action,
    ActionName,
    Gravity,
    decode_base64url,
    int_in_range,
    iter_params,
    parse_color,
    range_message,
    unknown_param
)
from imghandler.store import BufferObject
from imghandler.typing import ObjectKey

MAX_OFFSET = 4096
MAX_FONT_SIZE = 1000
DEFAULT_OFFSET = 10
DEFAULT_FONT_SIZE = 40
DEFAULT_FONT = 'sans'
TEXT_DPI = 72


@dataclasses.dataclass(eq=True, frozen=True)
class WatermarkOpts:
  text: Optional[str] = None
  image: Optional[ObjectKey] = None
  t: int = 100
  g: Gravity = Gravity.SE
  x: int = DEFAULT_OFFSET
  y: int = DEFAULT_OFFSET
  color: Tuple[int, int, int] = (0, 0, 0)
  size: int = DEFAULT_FONT_SIZE


def with_opacity(overlay: Image, opacity: int) -> Image:
  if not overlay.hasalpha():
    overlay = overlay.bandjoin(255)
  if opacity == 100:
    return overlay

  alpha = overlay[overlay.bands - 1] * (opacity / 100)
  colour = overlay.extract_band(0, n=overlay.bands - 1)
  return colour.bandjoin(alpha.cast(overlay.format))


def text_overlay(opts: WatermarkOpts) -> Image:
  mask = Image.text(opts.text, font=f'{DEFAULT_FONT} {opts.size}', dpi=TEXT_DPI)
  overlay = mask.new_from_image(list(opts.color)).copy(interpretation='srgb').bandjoin(mask)
  return with_opacity(overlay, opts.t)


class WatermarkAction(Action[WatermarkOpts]):
  name = ActionName.WATERMARK.value

  def validate(self, params: Sequence[str]) -> WatermarkOpts:
    opts = WatermarkOpts()
    for k, v in iter_params(self.name, params):
      if k == 'text':
        text = decode_base64url('Watermark text', v)
        if text.strip() == '':
          raise InvalidArgument('Watermark text is empty')
        opts = dataclasses.replace(opts, text=text)
      elif k == 'image':
        key = decode_base64url('Watermark image', v).removeprefix('/')
        if key == '' or '..' in key.split('/'):
          raise InvalidArgument('Invalid watermark image')
        opts = dataclasses.replace(opts, image=ObjectKey(key))
      elif k == 't':
        opts = dataclasses.replace(
            opts, t=int_in_range(v, 0, 100, range_message('Watermark transparency', 0, 100)))
      elif k == 'g':
        opts = dataclasses.replace(opts, g=Gravity.parse(v))
      elif k == 'x':
        opts = dataclasses.replace(
            opts, x=int_in_range(v, 0, MAX_OFFSET, range_message('X', 0, MAX_OFFSET)))
      elif k == 'y':
        opts = dataclasses.replace(
            opts, y=int_in_range(v, 0, MAX_OFFSET, range_message('Y', 0, MAX_OFFSET)))
      elif k == 'color':
        opts = dataclasses.replace(opts, color=parse_color(v))
      elif k == 'size':
        opts = dataclasses.replace(
            opts,
            size=int_in_range(v, 1, MAX_FONT_SIZE, range_message('Font size', 1, MAX_FONT_SIZE)))
      else:
        raise unknown_param(k)

    if (opts.text is None) == (opts.image is None):
      raise InvalidArgument('Watermark needs exactly one of text or image')

    return opts

  async def image_overlay(self, ctx: ImageContext, opts: WatermarkOpts) -> Image:
    assert opts.image is not None
    obj = await ctx.store.get(opts.image)
    assert isinstance(obj, BufferObject)

    overlay = (await engine.decode(obj.buffer)).colourspace('srgb')
    return with_opacity(overlay, opts.t)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)

    if opts.text is not None:
      overlay = text_overlay(opts)
    else:
      overlay = await self.image_overlay(ctx, opts)

    base = ctx.image
    x, y = opts.g.origin(base.width, base.height, overlay.width, overlay.height, opts.x, opts.y)
    composed = base.composite2(overlay, 'over', x=x, y=y)

    if not base.hasalpha() and composed.hasalpha():
      composed = composed.flatten()

    ctx.image = composed.cast(base.format)
