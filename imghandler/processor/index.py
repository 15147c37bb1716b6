import time
from typing import Any, Optional, Self, Sequence

from imghandler.context import ImageContext
from imghandler.engine import EngineError
from imghandler.errors import UnknownAction, UpstreamFailure
from imghandler.processor.action import Action, ActionName
from imghandler.processor.adjust import BrightAction, ContrastAction, SharpenAction
from imghandler.processor.blur import BlurAction
from imghandler.processor.circle import CircleAction
from imghandler.processor.crop import CropAction
from imghandler.processor.format import FormatAction
from imghandler.processor.interlace import InterlaceAction
from imghandler.processor.orient import AutoOrientAction
from imghandler.processor.quality import QualityAction
from imghandler.processor.resize import ResizeAction
from imghandler.processor.rotate import RotateAction
from imghandler.processor.watermark import WatermarkAction
from imghandler.request import split_directive

IMAGE_NAMESPACE = 'image'


class Registry:
  """Action table keyed by name.

  The first registration of a name wins. Once frozen the table is read-only
  and can be shared by concurrent requests.
  """

  def __init__(self) -> None:
    self._actions: dict[str, Action[Any]] = {}
    self._frozen = False

  def register(self, *actions: Action[Any]) -> Self:
    if self._frozen:
      raise RuntimeError('registry is frozen')
    for action in actions:
      if action.name not in self._actions:
        self._actions[action.name] = action
    return self

  def freeze(self) -> Self:
    self._frozen = True
    return self

  @property
  def frozen(self) -> bool:
    return self._frozen

  def resolve(self, name: str) -> Optional[Action[Any]]:
    return self._actions.get(name)

  def names(self) -> list[str]:
    return list(self._actions.keys())


def builtin_actions() -> list[Action[Any]]:
  actions: list[Action[Any]] = [
      ResizeAction(),
      CropAction(),
      QualityAction(),
      FormatAction(),
      RotateAction(),
      BlurAction(),
      CircleAction(),
      BrightAction(),
      ContrastAction(),
      SharpenAction(),
      InterlaceAction(),
      AutoOrientAction(),
      WatermarkAction(),
  ]
  assert sorted(a.name for a in actions) == sorted(n.value for n in ActionName)
  return actions


def default_registry() -> Registry:
  return Registry().register(*builtin_actions()).freeze()


class ImageProcessor:
  name = IMAGE_NAMESPACE

  def __init__(self, registry: Registry):
    if not registry.frozen:
      raise ValueError('registry must be frozen before processing')
    self.registry = registry

  def is_skipped(self, directive: str) -> bool:
    return directive == self.name or directive == ''

  def has_actions(self, directives: Sequence[str]) -> bool:
    return any(not self.is_skipped(d) for d in directives)

  def resolve(self, name: str) -> Action[Any]:
    action = self.registry.resolve(name)
    if action is None:
      raise UnknownAction(name)
    return action

  def validate(self, directives: Sequence[str]) -> None:
    """Check every directive without touching any image."""
    for directive in directives:
      if self.is_skipped(directive):
        continue
      params = split_directive(directive)
      self.resolve(params[0]).validate(params)

  async def process(self, ctx: ImageContext, directives: Sequence[str]) -> None:
    for directive in directives:
      if self.is_skipped(directive):
        continue

      # "<action-name>,<param-1>,<param-2>,..."
      params = split_directive(directive)
      action = self.resolve(params[0])
      action.validate(params)

      start_ns = time.time_ns()
      try:
        await action.process(ctx, params)
      except EngineError as e:
        raise UpstreamFailure(f'{action.name} failed: {e.message}') from e

      ctx.log.log_debug(
          'action applied', {
              'action': directive,
              'width': ctx.image.width,
              'height': ctx.image.height,
              'elapsed_us': (time.time_ns() - start_ns) // 1000,
          })
