import dataclasses
from typing import Optional, Sequence

from imghandler import engine
from imghandler.context import ImageContext
from imghandler.engine import ImageFormat
from imghandler.processor.action import (
    Action,
    ActionName,
    int_in_range,
    iter_params,
    unknown_param
)

DEFAULT_QUALITY = 72
UNKNOWN_SOURCE_QUALITY = 100
QUALITY_MESSAGE = 'Quality must be between 1 and 100'

supported_formats = [ImageFormat.JPEG, ImageFormat.WEBP]


@dataclasses.dataclass(eq=True, frozen=True)
class QualityOpts:
  q: Optional[int] = None
  Q: Optional[int] = None


def relative_quality(estimated: int, percentage: int) -> int:
  # Round half up.
  return min(100, max(1, engine.round_half_up(estimated * percentage / 100)))


class QualityAction(Action[QualityOpts]):
  name = ActionName.QUALITY.value

  def validate(self, params: Sequence[str]) -> QualityOpts:
    q: Optional[int] = None
    Q: Optional[int] = None
    for k, v in iter_params(self.name, params):
      if k == 'q':
        q = int_in_range(v, 1, 100, QUALITY_MESSAGE)
      elif k == 'Q':
        Q = int_in_range(v, 1, 100, QUALITY_MESSAGE)
      else:
        raise unknown_param(k)
    return QualityOpts(q=q, Q=Q)

  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    opts = self.validate(params)
    fmt = ctx.output_format()

    if fmt not in supported_formats:
      ctx.log.log_debug('quality ignored', {'format': fmt.value})
      return

    if opts.q is not None:
      estimated = await engine.identify_quality(ctx.source)
      if estimated is None:
        estimated = UNKNOWN_SOURCE_QUALITY
      quality = relative_quality(estimated, opts.q)
    elif opts.Q is not None:
      quality = opts.Q
    else:
      quality = DEFAULT_QUALITY

    ctx.quality = quality
