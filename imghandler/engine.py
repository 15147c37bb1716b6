import asyncio
import dataclasses
import io
import math
from enum import Enum
from typing import Any, Optional

import pyvips
from PIL import Image as PILImage
from PIL import UnidentifiedImageError
from pyvips import Image  # type: ignore

from imghandler.errors import UpstreamFailure

EngineError = pyvips.Error

# Annex K luminance table, natural order. The sum is order independent.
STANDARD_LUMINANCE_TABLE = [
    16, 11, 10, 16, 24, 40, 51, 61,
    12, 12, 14, 19, 26, 58, 60, 55,
    14, 13, 16, 24, 40, 57, 69, 56,
    14, 17, 22, 29, 51, 87, 80, 62,
    18, 22, 37, 56, 68, 109, 103, 77,
    24, 35, 55, 64, 81, 104, 113, 92,
    49, 64, 78, 87, 103, 121, 120, 101,
    72, 92, 95, 98, 112, 100, 103, 99,
]  # yapf: disable


class ImageFormat(Enum):
  JPEG = 'jpeg'
  PNG = 'png'
  WEBP = 'webp'
  GIF = 'gif'
  AVIF = 'avif'
  TIFF = 'tiff'

  @classmethod
  def from_name(cls, name: str) -> Optional['ImageFormat']:
    n = name.lower()
    if n == 'jpg':
      return cls.JPEG
    try:
      return cls(n)
    except ValueError:
      return None

  @classmethod
  def from_loader(cls, loader: str) -> Optional['ImageFormat']:
    return LOADER_MAP.get(loader)

  def extension(self) -> str:
    if self == ImageFormat.JPEG:
      return '.jpg'
    return f'.{self.value}'

  def mime(self) -> str:
    return f'image/{self.value}'

  def supports_alpha(self) -> bool:
    return self != ImageFormat.JPEG


LOADER_MAP = {
    'jpegload': ImageFormat.JPEG,
    'jpegload_buffer': ImageFormat.JPEG,
    'pngload': ImageFormat.PNG,
    'pngload_buffer': ImageFormat.PNG,
    'webpload': ImageFormat.WEBP,
    'webpload_buffer': ImageFormat.WEBP,
    'gifload': ImageFormat.GIF,
    'gifload_buffer': ImageFormat.GIF,
    'heifload': ImageFormat.AVIF,
    'heifload_buffer': ImageFormat.AVIF,
    'tiffload': ImageFormat.TIFF,
    'tiffload_buffer': ImageFormat.TIFF,
}


@dataclasses.dataclass(frozen=True)
class Metadata:
  format: Optional[ImageFormat]
  width: int
  height: int
  bands: int
  has_alpha: bool


@dataclasses.dataclass(frozen=True)
class Encoded:
  buffer: bytes
  format: ImageFormat
  width: int
  height: int


async def decode(buffer: bytes) -> Image:
  try:
    return await asyncio.to_thread(Image.new_from_buffer, buffer, '')
  except EngineError as e:
    raise UpstreamFailure(f'failed to decode image: {e.message}') from e


def metadata(image: Image) -> Metadata:
  if image.get_typeof('vips-loader') != 0:
    fmt = ImageFormat.from_loader(image.get('vips-loader'))
  else:
    fmt = None

  return Metadata(
      format=fmt,
      width=image.width,
      height=image.height,
      bands=image.bands,
      has_alpha=image.hasalpha())


def round_half_up(x: float) -> int:
  return math.floor(x + 0.5)


def estimate_jpeg_quality(luminance_table: list[int]) -> int:
  """Invert the IJG quality scaling of a luminance quantization table."""
  scale = sum(luminance_table) * 100 / sum(STANDARD_LUMINANCE_TABLE)
  if scale <= 100:
    quality = (200 - scale) / 2
  else:
    quality = 5000 / scale
  return min(100, max(1, round_half_up(quality)))


def identify_quality_sync(buffer: bytes) -> Optional[int]:
  try:
    with PILImage.open(io.BytesIO(buffer)) as im:
      qtables: Optional[dict[int, Any]] = getattr(im, 'quantization', None)
  except UnidentifiedImageError:
    return None

  if not qtables or 0 not in qtables:
    return None

  return estimate_jpeg_quality(list(qtables[0]))


async def identify_quality(buffer: bytes) -> Optional[int]:
  """Estimate the encoder quality of ``buffer``. Only JPEG carries one."""
  return await asyncio.to_thread(identify_quality_sync, buffer)


def save_options(fmt: ImageFormat, quality: Optional[int], interlace: bool) -> dict[str, Any]:
  opts: dict[str, Any] = {}
  match fmt:
    case ImageFormat.JPEG:
      if quality is not None:
        opts['Q'] = quality
      if interlace:
        opts['interlace'] = True
    case ImageFormat.WEBP | ImageFormat.AVIF:
      if quality is not None:
        opts['Q'] = quality
    case ImageFormat.PNG:
      if interlace:
        opts['interlace'] = True
    case _:
      pass
  return opts


def encode_sync(
    image: Image,
    fmt: ImageFormat,
    quality: Optional[int] = None,
    interlace: bool = False,
) -> Encoded:
  if not fmt.supports_alpha() and image.hasalpha():
    image = image.flatten(background=[255.0] * (image.bands - 1))

  buffer: bytes = image.write_to_buffer(fmt.extension(), **save_options(fmt, quality, interlace))
  return Encoded(buffer=buffer, format=fmt, width=image.width, height=image.height)


async def encode(
    image: Image,
    fmt: ImageFormat,
    quality: Optional[int] = None,
    interlace: bool = False,
) -> Encoded:
  try:
    return await asyncio.to_thread(encode_sync, image, fmt, quality, interlace)
  except EngineError as e:
    raise UpstreamFailure(f'failed to encode image: {e.message}') from e
