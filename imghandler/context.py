import dataclasses
from enum import Enum
from typing import Any, Mapping, Optional

from pyvips import Image  # type: ignore

from imghandler import engine
from imghandler.engine import ImageFormat, Metadata
from imghandler.logs import RequestLogger
from imghandler.store import BufferObject, BufferStore


class Feature(Enum):
  AUTO_WEBP = 'auto-webp'


@dataclasses.dataclass
class ImageContext:
  """State threaded through one request's action chain.

  ``image`` is owned by this context. Actions replace it with the result of
  their operation and must not keep a reference to it after returning.
  ``query`` holds the request's query parameters other than the chain.
  ``format``, ``quality`` and ``interlace`` are the encode settings applied
  once the chain has run.
  """
  image: Image
  store: BufferStore
  source: bytes
  source_format: ImageFormat
  log: RequestLogger
  features: dict[str, Any] = dataclasses.field(default_factory=dict)
  query: Mapping[str, str] = dataclasses.field(default_factory=dict)
  format: Optional[ImageFormat] = None
  quality: Optional[int] = None
  interlace: bool = False

  @classmethod
  async def from_object(
      cls,
      obj: BufferObject,
      store: BufferStore,
      log: RequestLogger,
      features: Optional[dict[str, Any]] = None,
      query: Optional[Mapping[str, str]] = None,
  ) -> 'ImageContext':
    image = await engine.decode(obj.buffer)
    source_format = engine.metadata(image).format
    if source_format is None:
      source_format = ImageFormat.from_name(obj.content_type.removeprefix('image/'))
    if source_format is None:
      source_format = ImageFormat.PNG

    return cls(
        image=image,
        store=store,
        source=obj.buffer,
        source_format=source_format,
        log=log,
        features={} if features is None else features,
        query={} if query is None else query)

  def metadata(self) -> Metadata:
    return engine.metadata(self.image)

  def has_feature(self, feature: Feature) -> bool:
    return bool(self.features.get(feature.value, False))

  def output_format(self) -> ImageFormat:
    if self.format is not None:
      return self.format
    if self.has_feature(Feature.AUTO_WEBP) and self.source_format in [
        ImageFormat.JPEG, ImageFormat.PNG
    ]:
      return ImageFormat.WEBP
    return self.source_format

  async def encode(self) -> engine.Encoded:
    return await engine.encode(self.image, self.output_format(), self.quality, self.interlace)
