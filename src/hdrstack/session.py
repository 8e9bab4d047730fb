"""
Session: the one object the presentation layer talks to.

It owns the image stack, the edit history and the viewer-wide display
toggles. Every edit goes through a command on the history; reads (render,
stats, listings) work on snapshots and never mutate anything.
"""
from typing import List, Optional, Union

import numpy as np
from loguru import logger

from hdrstack import file_io
from hdrstack.actions import get_action
from hdrstack.config import ViewerSettings
from hdrstack.errors import EmptyStack, HDRStackError, InvalidParameter
from hdrstack.history import (
    CloseImage, EditHistory, Flip, HistoryState, Reorder, ResetTonemapping,
    SelectGroup, SelectImage, SelectReference, SetExposure, SetGamma,
)
from hdrstack.model.image import HDRImage, ImageDescriptor, NormalizationStats
from hdrstack.model.stack import ImageEntry, ImageStack
from hdrstack.pipeline.compositor import BlendMode
from hdrstack.pipeline.renderer import render_viewport
from hdrstack.pipeline.request import RenderSnapshot, ViewRect
from hdrstack.pipeline.tonemap import TonemapOptions
from hdrstack.pipeline.worker import RenderWorker


class Session:
    def __init__(self, settings: Optional[ViewerSettings] = None):
        self.settings = settings or ViewerSettings()
        self.stack = ImageStack()
        self.history = EditHistory(self.stack, limit=self.settings.history_limit)

        self.normalize = self.settings.normalize
        self.dither = self.settings.dither
        self.clamp_to_ldr = self.settings.clamp_to_ldr
        self.blend_mode = BlendMode.from_name(self.settings.blend_mode)
        self.dither_seed = 0

        self._worker: Optional[RenderWorker] = None

    # ------------------------------------------------------------------
    # Loading / closing
    # ------------------------------------------------------------------
    def add_image(self, image: Union[HDRImage, ImageDescriptor]) -> int:
        if isinstance(image, ImageDescriptor):
            image = HDRImage.from_descriptor(image)
        image_id = self.stack.add(image)
        logger.info(f"Added '{image.name}' ({image.width}x{image.height}) as #{image_id}")
        return image_id

    def open_image(self, path: str) -> int:
        return self.add_image(file_io.load_image(path))

    def save_image(self, path: str, rect: Optional[ViewRect] = None) -> bool:
        return file_io.save_ldr(self.render_viewport(rect), path)

    def close_image(self, image_id: Optional[int] = None):
        image = self._target(image_id)
        self.history.push(CloseImage(
            image=image,
            position=self.stack.index_of(image.id),
            old_current=self.stack.current_id,
            old_reference=self.stack.reference_id,
        ))
        logger.info(f"Closed '{image.name}'")

    def close_all(self):
        for image in reversed(list(self.stack)):
            self.close_image(image.id)

    # ------------------------------------------------------------------
    # Tonemapping edits
    # ------------------------------------------------------------------
    def effective_gamma(self, image: HDRImage) -> float:
        if image.gamma_override is not None:
            return image.gamma_override
        return self.settings.default_gamma

    def set_exposure(self, ev: float, image_id: Optional[int] = None):
        image = self._target(image_id)
        if ev != image.exposure_ev:
            self.history.push(SetExposure(image.id, image.exposure_ev, float(ev)))

    def increase_exposure(self):
        image = self._target()
        self.set_exposure(image.exposure_ev + self.settings.exposure_step)

    def decrease_exposure(self):
        image = self._target()
        self.set_exposure(image.exposure_ev - self.settings.exposure_step)

    def set_gamma(self, gamma: Optional[float], image_id: Optional[int] = None):
        image = self._target(image_id)
        if gamma != image.gamma_override:
            self.history.push(SetGamma(image.id, image.gamma_override, gamma))

    def increase_gamma(self):
        image = self._target()
        self.set_gamma(round(self.effective_gamma(image) + self.settings.gamma_step, 6))

    def decrease_gamma(self):
        """Stops at the last positive step, like moves stop at the list ends."""
        image = self._target()
        gamma = round(self.effective_gamma(image) - self.settings.gamma_step, 6)
        if gamma <= 0:
            logger.debug(f"[Session] Gamma already at its lowest step for '{image.name}'")
            return
        self.set_gamma(gamma)

    def reset_tonemapping(self):
        image = self._target()
        if image.exposure_ev != 0.0 or image.gamma_override is not None:
            self.history.push(ResetTonemapping(image.id, image.exposure_ev, image.gamma_override))

    def flip(self, axis: str):
        image = self._target()
        self.history.push(Flip(image.id, axis))

    # ------------------------------------------------------------------
    # Channel groups
    # ------------------------------------------------------------------
    def select_group(self, index: int):
        image = self._target()
        if not 0 <= index < len(image.groups):
            raise InvalidParameter(
                f"Group index {index} out of range for '{image.name}' ({len(image.groups)} groups)"
            )
        if index != image.selected_group_index:
            self.history.push(SelectGroup(image.id, image.selected_group_index, index))

    def cycle_group(self, step: int = 1):
        image = self._target()
        self.select_group((image.selected_group_index + step) % len(image.groups))

    # ------------------------------------------------------------------
    # Selection / ordering
    # ------------------------------------------------------------------
    def select_image(self, image_id: int):
        self.stack.index_of(image_id)
        if image_id != self.stack.current_id:
            self.history.push(SelectImage(self.stack.current_id, image_id, self.stack.reference_id))

    def select_nth(self, n: int):
        """1-based, as on the number keys"""
        self.select_image(self.stack.id_at(n - 1))

    def select_next(self):
        self._require_images()
        self.select_image(self.stack.next_id(1))

    def select_previous(self):
        self._require_images()
        self.select_image(self.stack.next_id(-1))

    def select_reference(self, image_id: Optional[int]):
        if image_id != self.stack.reference_id:
            self.history.push(SelectReference(self.stack.reference_id, image_id))

    def toggle_reference(self, image_id: int):
        self.select_reference(None if image_id == self.stack.reference_id else image_id)

    def move_forward(self, image_id: Optional[int] = None):
        self._move(self._target(image_id).id, 1)

    def move_backward(self, image_id: Optional[int] = None):
        self._move(self._target(image_id).id, -1)

    def _move(self, image_id: int, step: int):
        pos = self.stack.index_of(image_id)
        new_pos = pos + step
        if 0 <= new_pos < len(self.stack):
            self.history.push(Reorder(image_id, pos, new_pos))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def undo(self):
        return self.history.undo()

    def redo(self):
        return self.history.redo()

    def history_state(self) -> HistoryState:
        return self.history.state()

    # ------------------------------------------------------------------
    # Viewer-wide display toggles (not part of the edit history)
    # ------------------------------------------------------------------
    def set_blend_mode(self, mode: BlendMode):
        self.blend_mode = BlendMode(mode)

    def select_blend_mode(self, index: int):
        modes = list(BlendMode)
        if not 0 <= index < len(modes):
            raise InvalidParameter(f"Blend mode index {index} out of range ({len(modes)} modes)")
        self.blend_mode = modes[index]

    def cycle_blend_mode(self, step: int = 1):
        self.blend_mode = self.blend_mode.cycle(step)

    def toggle_normalize(self):
        self.normalize = not self.normalize

    def toggle_dither(self):
        self.dither = not self.dither

    def toggle_clamp(self):
        self.clamp_to_ldr = not self.clamp_to_ldr

    def tonemap_options(self) -> TonemapOptions:
        return TonemapOptions(normalize=self.normalize, dither=self.dither, clamp_to_ldr=self.clamp_to_ldr)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    def list_images(self) -> List[ImageEntry]:
        return self.stack.list_images()

    def current_stats(self) -> NormalizationStats:
        image = self.stack.current()
        if image is None:
            raise EmptyStack("No current image")
        return image.stats()

    def snapshot(self) -> RenderSnapshot:
        image = self.stack.current()
        if image is None:
            raise EmptyStack("No current image to render")
        reference = self.stack.reference()
        options = self.tonemap_options()
        return RenderSnapshot(
            image_id=image.id,
            width=image.width,
            height=image.height,
            planes=image.group_planes(),
            ev=image.exposure_ev,
            gamma=self.effective_gamma(image),
            options=options,
            stats=image.stats() if options.normalize else None,
            reference_id=reference.id if reference is not None else None,
            reference_planes=reference.group_planes() if reference is not None else None,
            blend_mode=self.blend_mode,
            dither_seed=self.dither_seed,
        )

    def render_viewport(self, rect: Optional[ViewRect] = None) -> np.ndarray:
        return render_viewport(
            self.snapshot(), rect,
            workers=self.settings.render_workers,
            block_rows=self.settings.block_rows,
        )

    @property
    def worker(self) -> RenderWorker:
        if self._worker is None:
            self._worker = RenderWorker(workers=self.settings.render_workers, block_rows=self.settings.block_rows)
        return self._worker

    def request_render(self, rect: Optional[ViewRect] = None) -> int:
        """Asynchronous redraw; results arrive through ``worker.on_result``."""
        return self.worker.submit(self.snapshot(), rect)

    # ------------------------------------------------------------------
    # Dispatch by action id
    # ------------------------------------------------------------------
    def dispatch(self, action_id: str, *args):
        action = get_action(action_id)
        try:
            return getattr(self, action.handler)(*action.args, *args)
        except HDRStackError as e:
            logger.warning(f"Action '{action_id}' rejected: {e}")
            raise

    # ------------------------------------------------------------------
    def _require_images(self):
        if not len(self.stack):
            raise EmptyStack("No images loaded")

    def _target(self, image_id: Optional[int] = None) -> HDRImage:
        if image_id is not None:
            return self.stack.get(image_id)
        image = self.stack.current()
        if image is None:
            raise EmptyStack("No current image")
        return image
