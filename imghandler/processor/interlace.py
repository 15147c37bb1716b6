import dataclasses
from typing import Sequence

from imghandler.context import ImageContext
from imghandler.engine import ImageFormat
from imghandler.errors import InvalidArgument
from imghandler.processor.action import Action, ActionName, int_in_range, single_value

supported_formats = [ImageFormat.JPEG, ImageFormat.PNG]


@dataclasses.dataclass(eq=True, frozen=True)
class InterlaceOpts:
  interlace: bool


class InterlaceAction(Action[InterlaceOpts]):
  name = ActionName.INTERLACE.value

  def validate(self, params: Sequence[str]) -> InterlaceOpts:
    v = single_value(self.name, params)
    if v is None:
      raise InvalidArgument('Interlace must be 0 or 1')
    return InterlaceOpts(interlace=int_in_range(v, 0, 1, 'Interlace must be 0 or 1') == 1)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    fmt = ctx.output_format()
    if fmt not in supported_formats:
      ctx.log.log_debug('interlace ignored', {'format': fmt.value})
      return
    ctx.interlace = opts.interlace
