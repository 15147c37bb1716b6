import base64
import binascii
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Generic, Iterator, Optional, Sequence, Tuple, TypeVar

from imghandler.context import ImageContext
from imghandler.errors import InvalidArgument

int_re = re.compile(r'^-?\d+$')
color_re = re.compile(r'^[0-9A-Fa-f]{6}$')

KEY_VALUE_DELIMITER = '_'

O = TypeVar('O')


class ActionName(Enum):
  RESIZE = 'resize'
  CROP = 'crop'
  QUALITY = 'quality'
  FORMAT = 'format'
  ROTATE = 'rotate'
  BLUR = 'blur'
  CIRCLE = 'circle'
  BRIGHT = 'bright'
  CONTRAST = 'contrast'
  SHARPEN = 'sharpen'
  INTERLACE = 'interlace'
  AUTO_ORIENT = 'auto-orient'
  WATERMARK = 'watermark'


class Action(ABC, Generic[O]):
  """One step of an action chain.

  ``params`` is the directive split on ``,``, usually starting with the
  action name, e.g. ``['quality', 'q_50']``. ``validate`` is pure: it turns
  the params into an options value or raises ``InvalidArgument``.
  ``process`` validates again and applies the action to the context.
  """
  name: str

  @abstractmethod
  def validate(self, params: Sequence[str]) -> O:
    ...

  @abstractmethod
  async def process(self, ctx: ImageContext, params: Sequence[str]) -> None:
    ...


def iter_params(name: str, params: Sequence[str]) -> Iterator[Tuple[str, str]]:
  for param in params:
    if param == name or param == '':
      continue
    k, _, v = param.partition(KEY_VALUE_DELIMITER)
    yield k, v


def bare_values(name: str, params: Sequence[str]) -> list[str]:
  return [p for p in params if p != name and p != '']


def single_value(name: str, params: Sequence[str]) -> Optional[str]:
  values = bare_values(name, params)
  if len(values) == 0:
    return None
  if len(values) > 1:
    raise InvalidArgument(f'Unknown param: "{values[1]}"')
  return values[0]


def unknown_param(k: str) -> InvalidArgument:
  return InvalidArgument(f'Unknown param: "{k}"')


def parse_int(v: str) -> Optional[int]:
  if int_re.match(v) is None:
    return None
  return int(v)


def int_in_range(v: str, lower: int, upper: int, message: str) -> int:
  n = parse_int(v)
  if n is None or not lower <= n <= upper:
    raise InvalidArgument(message)
  return n


def range_message(field: str, lower: int, upper: int) -> str:
  return f'{field} must be between {lower} and {upper}'


def parse_color(v: str) -> Tuple[int, int, int]:
  if color_re.match(v) is None:
    raise InvalidArgument(f'Color must be a 6-digit hex value: "{v}"')
  return (int(v[0:2], 16), int(v[2:4], 16), int(v[4:6], 16))


def decode_base64url(field: str, v: str) -> str:
  try:
    return base64.urlsafe_b64decode(v + '=' * (-len(v) % 4)).decode()
  except (binascii.Error, UnicodeDecodeError) as e:
    raise InvalidArgument(f'{field} must be URL-safe base64') from e


class Gravity(Enum):
  NW = 'nw'
  NORTH = 'north'
  NE = 'ne'
  WEST = 'west'
  CENTER = 'center'
  EAST = 'east'
  SW = 'sw'
  SOUTH = 'south'
  SE = 'se'

  @classmethod
  def parse(cls, v: str) -> 'Gravity':
    try:
      return cls(v)
    except ValueError:
      raise InvalidArgument(f'Unknown gravity: "{v}"') from None

  def origin(self, frame_width: int, frame_height: int, width: int, height: int, dx: int,
             dy: int) -> Tuple[int, int]:
    """Top-left corner of a ``width`` x ``height`` box placed in the frame.

    Offsets push the box away from the edge it is anchored to. They are
    ignored along an axis where the box is centred.
    """
    if self in [Gravity.NW, Gravity.WEST, Gravity.SW]:
      x = dx
    elif self in [Gravity.NE, Gravity.EAST, Gravity.SE]:
      x = frame_width - width - dx
    else:
      x = (frame_width - width) // 2

    if self in [Gravity.NW, Gravity.NORTH, Gravity.NE]:
      y = dy
    elif self in [Gravity.SW, Gravity.SOUTH, Gravity.SE]:
      y = frame_height - height - dy
    else:
      y = (frame_height - height) // 2

    return (x, y)
