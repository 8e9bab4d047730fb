"""
Reversible edits.

Every user edit is a small command that carries both its forward and its
inverse data. ``EditHistory`` keeps one linear list per session with a
cursor; pushing after an undo drops the redo tail.
"""
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from hdrstack.errors import NothingToRedo, NothingToUndo
from hdrstack.model.image import HDRImage
from hdrstack.model.stack import ImageStack


class Command:
    """Base class: ``apply`` validates before it mutates anything."""

    def apply(self, stack: ImageStack):
        raise NotImplementedError

    def revert(self, stack: ImageStack):
        raise NotImplementedError

    def describe(self) -> str:
        return self.__class__.__name__


@dataclass(frozen=True)
class SetExposure(Command):
    image_id: int
    old: float
    new: float

    def apply(self, stack):
        stack.get(self.image_id).set_exposure(self.new)

    def revert(self, stack):
        stack.get(self.image_id).set_exposure(self.old)

    def describe(self):
        return f"Exposure {self.old:+.2f} -> {self.new:+.2f} EV"


@dataclass(frozen=True)
class SetGamma(Command):
    image_id: int
    old: Optional[float]
    new: Optional[float]

    def apply(self, stack):
        stack.get(self.image_id).set_gamma(self.new)

    def revert(self, stack):
        stack.get(self.image_id).set_gamma(self.old)

    def describe(self):
        return f"Gamma {self.old} -> {self.new}"


@dataclass(frozen=True)
class ResetTonemapping(Command):
    image_id: int
    old_ev: float
    old_gamma: Optional[float]

    def apply(self, stack):
        image = stack.get(self.image_id)
        image.set_exposure(0.0)
        image.set_gamma(None)

    def revert(self, stack):
        image = stack.get(self.image_id)
        image.set_gamma(self.old_gamma)
        image.set_exposure(self.old_ev)


@dataclass(frozen=True)
class Flip(Command):
    image_id: int
    axis: str

    def apply(self, stack):
        stack.get(self.image_id).flip(self.axis)

    def revert(self, stack):
        # a flip is its own inverse
        stack.get(self.image_id).flip(self.axis)

    def describe(self):
        return f"Flip {self.axis}"


@dataclass(frozen=True)
class SelectGroup(Command):
    image_id: int
    old: int
    new: int

    def apply(self, stack):
        stack.get(self.image_id).select_group(self.new)

    def revert(self, stack):
        stack.get(self.image_id).select_group(self.old)


@dataclass(frozen=True)
class SelectImage(Command):
    old: Optional[int]
    new: int
    old_reference: Optional[int] = None

    def apply(self, stack):
        stack.select_current(self.new)

    def revert(self, stack):
        stack.set_selection(self.old, self.old_reference)


@dataclass(frozen=True)
class SelectReference(Command):
    old: Optional[int]
    new: Optional[int]

    def apply(self, stack):
        stack.select_reference(self.new)

    def revert(self, stack):
        stack.select_reference(self.old)


@dataclass(frozen=True)
class Reorder(Command):
    image_id: int
    old_pos: int
    new_pos: int

    def apply(self, stack):
        stack.move(self.image_id, self.new_pos)

    def revert(self, stack):
        stack.move(self.image_id, self.old_pos)


@dataclass(frozen=True)
class CloseImage(Command):
    """Owns the removed image so that undo can put it back."""
    image: HDRImage
    position: int
    old_current: Optional[int]
    old_reference: Optional[int]

    def apply(self, stack):
        stack.remove(self.image.id)

    def revert(self, stack):
        stack.insert(self.image, self.position)
        stack.set_selection(self.old_current, self.old_reference)

    def describe(self):
        return f"Close '{self.image.name}'"


@dataclass(frozen=True)
class HistoryState:
    can_undo: bool
    can_redo: bool


class EditHistory:
    """Undo/redo over one ImageStack, strictly chronological across images."""

    def __init__(self, stack: ImageStack, limit: Optional[int] = None):
        self.stack = stack
        self.limit = limit
        self._commands: List[Command] = []
        self._cursor = 0

    def __len__(self):
        return len(self._commands)

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._commands)

    def state(self) -> HistoryState:
        return HistoryState(self.can_undo, self.can_redo)

    def push(self, command: Command):
        # a rejected command raises here and is never recorded
        command.apply(self.stack)
        del self._commands[self._cursor:]
        self._commands.append(command)
        if self.limit is not None and len(self._commands) > self.limit:
            del self._commands[:len(self._commands) - self.limit]
        self._cursor = len(self._commands)
        logger.debug(f"[History] Push: {command.describe()} ({self._cursor} entries)")

    def undo(self) -> Command:
        if not self.can_undo:
            raise NothingToUndo("Nothing to undo")
        command = self._commands[self._cursor - 1]
        command.revert(self.stack)
        self._cursor -= 1
        logger.debug(f"[History] Undo: {command.describe()}")
        return command

    def redo(self) -> Command:
        if not self.can_redo:
            raise NothingToRedo("Nothing to redo")
        command = self._commands[self._cursor]
        command.apply(self.stack)
        self._cursor += 1
        logger.debug(f"[History] Redo: {command.describe()}")
        return command

    def clear(self):
        self._commands.clear()
        self._cursor = 0
