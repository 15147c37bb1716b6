import asyncio
from typing import Callable

import pyvips
import pytest
from pyvips import Image  # type: ignore

from imghandler.context import ImageContext
from imghandler.engine import ImageFormat
from imghandler.errors import InvalidArgument

from .adjust import AdjustOpts, BrightAction, ContrastAction, SharpenAction
from .blur import BlurAction, BlurOpts, gaussian_mask
from .circle import CircleAction
from .format import FormatAction, FormatOpts
from .interlace import InterlaceAction
from .orient import AutoOrientAction
from .rotate import RotateAction


def run(ctx: ImageContext, action: object, directive: str) -> ImageContext:
  asyncio.run(action.process(ctx, directive.split(',')))  # type: ignore
  return ctx


@pytest.mark.parametrize(
    'directive,expected', [
        ('format,webp', ImageFormat.WEBP),
        ('format,jpg', ImageFormat.JPEG),
        ('format,PNG', ImageFormat.PNG),
    ],
    ids=['webp', 'jpg', 'upper'])
def test_format_validate(directive: str, expected: ImageFormat) -> None:
  assert FormatOpts(format=expected) == FormatAction().validate(directive.split(','))


@pytest.mark.parametrize(
    'directive,message', [
        ('format', 'Format is required'),
        ('format,bmp', 'Unsupported format: "bmp"'),
        ('format,png,webp', 'Unknown param: "webp"'),
    ],
    ids=['missing', 'unsupported', 'extra'])
def test_format_validate_error(directive: str, message: str) -> None:
  with pytest.raises(InvalidArgument, match=message):
    FormatAction().validate(directive.split(','))


def test_format(make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes) -> None:
  ctx = run(make_ctx(jpeg_buffer), FormatAction(), 'format,png')

  assert ImageFormat.PNG == ctx.format
  encoded = asyncio.run(ctx.encode())
  assert ImageFormat.PNG == encoded.format
  assert 'image/png' == encoded.format.mime()


@pytest.mark.parametrize(
    'directive,expected', [
        ('rotate,90', (200, 400)),
        ('rotate,180', (400, 200)),
        ('rotate,270', (200, 400)),
        ('rotate,0', (400, 200)),
        ('rotate,360', (400, 200)),
    ],
    ids=['90', '180', '270', 'zero', 'full'])
def test_rotate(
    make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes, directive: str,
    expected: tuple[int, int]) -> None:
  ctx = run(make_ctx(jpeg_buffer), RotateAction(), directive)

  assert expected == (ctx.image.width, ctx.image.height)


def test_rotate_free_angle(make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes) -> None:
  ctx = run(make_ctx(jpeg_buffer), RotateAction(), 'rotate,45')

  assert 400 < ctx.image.width
  assert 200 < ctx.image.height


@pytest.mark.parametrize(
    'directive,message', [
        ('rotate', 'Rotate degree is required'),
        ('rotate,361', 'Rotate degree must be between 0 and 360'),
        ('rotate,-1', 'Rotate degree must be between 0 and 360'),
        ('rotate,right', 'Rotate degree must be between 0 and 360'),
    ],
    ids=['missing', 'over', 'negative', 'nan'])
def test_rotate_validate_error(directive: str, message: str) -> None:
  with pytest.raises(InvalidArgument, match=message):
    RotateAction().validate(directive.split(','))


def test_blur(make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes) -> None:
  assert BlurOpts(r=3, s=2) == BlurAction().validate('blur,r_3,s_2'.split(','))

  ctx = run(make_ctx(jpeg_buffer), BlurAction(), 'blur,r_3,s_2')
  assert (400, 200) == (ctx.image.width, ctx.image.height)


def test_blur_radius_bounds_window(make_ctx: Callable[..., ImageContext]) -> None:
  # Black up to x == 32, white from x == 33.
  step = (Image.xyz(64, 64)[0] > 32).copy(interpretation='b-w')
  buffer = step.write_to_buffer('.png')

  narrow = run(make_ctx(buffer, 'image/png'), BlurAction(), 'blur,r_1,s_5')
  wide = run(make_ctx(buffer, 'image/png'), BlurAction(), 'blur,r_50,s_5')

  assert 0 == narrow.image.getpoint(30, 32)[0]
  assert 0 < wide.image.getpoint(30, 32)[0]
  assert (64, 64) == (wide.image.width, wide.image.height)


def test_gaussian_mask() -> None:
  mask = gaussian_mask(3, 2)

  assert (7, 1) == (mask.width, mask.height)
  assert abs(sum(mask.getpoint(x, 0)[0] for x in range(7)) - mask.get('scale')) < 1e-6


@pytest.mark.parametrize(
    'directive,message', [
        ('blur,r_3', 'Blur needs both r and s'),
        ('blur,s_3', 'Blur needs both r and s'),
        ('blur,r_0,s_1', 'Blur radius must be between 1 and 50'),
        ('blur,r_1,s_51', 'Blur sigma must be between 1 and 50'),
        ('blur,r_1,s_1,x_1', 'Unknown param: "x"'),
    ],
    ids=['no_sigma', 'no_radius', 'zero_radius', 'huge_sigma', 'unknown_param'])
def test_blur_validate_error(directive: str, message: str) -> None:
  with pytest.raises(InvalidArgument, match=message):
    BlurAction().validate(directive.split(','))


@pytest.mark.parametrize(
    'directive,size', [
        ('circle,r_50', 100),
        ('circle,r_500', 200),
    ],
    ids=['inside', 'clamped'])
def test_circle(
    make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes, directive: str, size: int) -> None:
  ctx = run(make_ctx(jpeg_buffer), CircleAction(), directive)
  image = ctx.image

  assert (size, size) == (image.width, image.height)
  assert image.hasalpha()
  assert 0 == image.getpoint(0, 0)[3]
  assert 255 == image.getpoint(size // 2, size // 2)[3]


def test_circle_to_jpeg(make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes) -> None:
  ctx = run(make_ctx(jpeg_buffer), CircleAction(), 'circle,r_50')
  encoded = asyncio.run(ctx.encode())

  assert ImageFormat.JPEG == encoded.format
  assert 3 == Image.new_from_buffer(encoded.buffer, '').bands


@pytest.mark.parametrize(
    'directive,message', [
        ('circle', 'Circle radius is required'),
        ('circle,r_0', 'Circle radius must be between 1 and 8192'),
        ('circle,w_10', 'Unknown param: "w"'),
    ],
    ids=['missing', 'zero', 'unknown_param'])
def test_circle_validate_error(directive: str, message: str) -> None:
  with pytest.raises(InvalidArgument, match=message):
    CircleAction().validate(directive.split(','))


@pytest.mark.parametrize(
    'action,directive,expected', [
        (BrightAction(), 'bright,-100', [0, 0, 0]),
        (BrightAction(), 'bright,0', [200, 120, 40]),
        (ContrastAction(), 'contrast,100', [255, 112, 0]),
        (ContrastAction(), 'contrast,-100', [128, 128, 128]),
        (ContrastAction(), 'contrast,0', [200, 120, 40]),
    ],
    ids=['dark', 'bright_noop', 'contrast_max', 'contrast_min', 'contrast_noop'])
def test_adjust(
    make_ctx: Callable[..., ImageContext], png_buffer: bytes, action: object, directive: str,
    expected: list[int]) -> None:
  ctx = run(make_ctx(png_buffer, 'image/png'), action, directive)

  assert 'uchar' == ctx.image.format
  assert expected == [int(v) for v in ctx.image.getpoint(10, 10)]


def test_bright_clips(make_ctx: Callable[..., ImageContext], png_buffer: bytes) -> None:
  ctx = run(make_ctx(png_buffer, 'image/png'), BrightAction(), 'bright,100')

  assert [255, 255, 255] == [int(v) for v in ctx.image.getpoint(10, 10)]


def test_adjust_keeps_alpha(
    make_ctx: Callable[..., ImageContext], make_image: Callable[..., Image]) -> None:
  buffer = make_image(32, 32).bandjoin(64).copy(interpretation='srgb').write_to_buffer('.png')
  ctx = run(make_ctx(buffer, 'image/png'), BrightAction(), 'bright,-100')

  assert [0, 0, 0, 64] == [int(v) for v in ctx.image.getpoint(1, 1)]


def test_sharpen(make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes) -> None:
  assert AdjustOpts(value=100) == SharpenAction().validate('sharpen,100'.split(','))

  ctx = run(make_ctx(jpeg_buffer), SharpenAction(), 'sharpen,100')
  assert (400, 200) == (ctx.image.width, ctx.image.height)


@pytest.mark.parametrize(
    'action,directive,message', [
        (BrightAction(), 'bright', 'Bright is required'),
        (BrightAction(), 'bright,101', 'Bright must be between -100 and 100'),
        (ContrastAction(), 'contrast,-101', 'Contrast must be between -100 and 100'),
        (SharpenAction(), 'sharpen,49', 'Sharpen must be between 50 and 399'),
        (SharpenAction(), 'sharpen,400', 'Sharpen must be between 50 and 399'),
    ],
    ids=['bright_missing', 'bright_over', 'contrast_under', 'sharpen_under', 'sharpen_over'])
def test_adjust_validate_error(action: object, directive: str, message: str) -> None:
  with pytest.raises(InvalidArgument, match=message):
    action.validate(directive.split(','))  # type: ignore


@pytest.mark.parametrize(
    'buffer_name,content_type,directive,expected', [
        ('jpeg_buffer', 'image/jpeg', 'interlace,1', True),
        ('jpeg_buffer', 'image/jpeg', 'interlace,0', False),
        ('png_buffer', 'image/png', 'interlace,1', True),
        ('webp_buffer', 'image/webp', 'interlace,1', False),
    ],
    ids=['jpeg', 'jpeg_off', 'png', 'webp_ignored'])
def test_interlace(
    request: pytest.FixtureRequest, make_ctx: Callable[..., ImageContext], buffer_name: str,
    content_type: str, directive: str, expected: bool) -> None:
  buffer = request.getfixturevalue(buffer_name)
  ctx = run(make_ctx(buffer, content_type), InterlaceAction(), directive)

  assert expected == ctx.interlace


def test_interlace_encodes_progressive(
    make_ctx: Callable[..., ImageContext], jpeg_buffer: bytes) -> None:
  ctx = run(make_ctx(jpeg_buffer), InterlaceAction(), 'interlace,1')
  encoded = asyncio.run(ctx.encode())

  assert ImageFormat.JPEG == encoded.format


@pytest.mark.parametrize(
    'directive', ['interlace', 'interlace,2', 'interlace,-1'], ids=['missing', 'two', 'negative'])
def test_interlace_validate_error(directive: str) -> None:
  with pytest.raises(InvalidArgument, match='Interlace must be 0 or 1'):
    InterlaceAction().validate(directive.split(','))


@pytest.mark.parametrize(
    'directive,expected', [
        ('auto-orient,1', (200, 400)),
        ('auto-orient,0', (400, 200)),
    ],
    ids=['on', 'off'])
def test_auto_orient(
    make_ctx: Callable[..., ImageContext], make_image: Callable[..., Image], directive: str,
    expected: tuple[int, int]) -> None:
  image = make_image(400, 200).copy()
  image.set_type(pyvips.GValue.gint_type, 'orientation', 6)
  ctx = run(make_ctx(image.write_to_buffer('.jpg')), AutoOrientAction(), directive)

  assert expected == (ctx.image.width, ctx.image.height)


@pytest.mark.parametrize(
    'directive', ['auto-orient', 'auto-orient,2'], ids=['missing', 'two'])
def test_auto_orient_validate_error(directive: str) -> None:
  with pytest.raises(InvalidArgument, match='Auto orient must be 0 or 1'):
    AutoOrientAction().validate(directive.split(','))
