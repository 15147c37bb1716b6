import dataclasses
from typing import Sequence

from imghandler.context import ImageContext
from imghandler.engine import ImageFormat
from imghandler.errors import InvalidArgument
from imghandler.processor.action import Action, ActionName, single_value


@dataclasses.dataclass(eq=True, frozen=True)
class FormatOpts:
  format: ImageFormat


class FormatAction(Action[FormatOpts]):
  name = ActionName.FORMAT.value

  def validate(self, params: Sequence[str]) -> FormatOpts:
    v = single_value(self.name, params)
    if v is None:
      raise InvalidArgument('Format is required')

    fmt = ImageFormat.from_name(v)
    if fmt is None:
      raise InvalidArgument(f'Unsupported format: "{v}"')

    return FormatOpts(format=fmt)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    ctx.format = opts.format
