import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from pyvips import Image  # type: ignore

from imghandler.context import ImageContext
from imghandler.logs import RequestLogger
from imghandler.store import BufferObject, LocalStore

JPEG_QUALITY = 82


def new_image(width: int, height: int, color: tuple[int, int, int] = (200, 120, 40)) -> Image:
  return (Image.black(width, height, bands=3) + list(color)).cast('uchar').copy(
      interpretation='srgb')


@pytest.fixture
def make_image() -> Callable[..., Image]:
  return new_image


@pytest.fixture
def jpeg_buffer() -> bytes:
  return new_image(400, 200).write_to_buffer('.jpg', Q=JPEG_QUALITY)


@pytest.fixture
def png_buffer() -> bytes:
  return new_image(400, 200).write_to_buffer('.png')


@pytest.fixture
def webp_buffer() -> bytes:
  return new_image(400, 200).write_to_buffer('.webp', Q=90)


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
  return LocalStore(tmp_path)


@pytest.fixture
def rlog() -> RequestLogger:
  return RequestLogger.for_request(logging.getLogger('imghandler.test'), '/test', '', '')


@pytest.fixture
def make_ctx(store: LocalStore, rlog: RequestLogger) -> Callable[..., ImageContext]:

  def fn(
      buffer: bytes,
      content_type: str = 'image/jpeg',
      features: Optional[dict[str, Any]] = None,
  ) -> ImageContext:
    obj = BufferObject(buffer=buffer, content_type=content_type)
    return asyncio.run(ImageContext.from_object(obj, store, rlog, features))

  return fn
