import itertools
from dataclasses import dataclass
from typing import Iterator, List, Optional

from loguru import logger

from hdrstack.errors import InvalidParameter, NotFound
from hdrstack.model.image import HDRImage


@dataclass(frozen=True)
class ImageEntry:
    """Side-panel row for one image"""
    id: int
    display_name: str
    is_current: bool
    is_reference: bool


class ImageStack:
    """
    Ordered collection of loaded images with a current and an optional
    reference selection.

    Selections are tracked by image id so that reordering never detaches
    them from their image; ``current_index`` / ``reference_index`` are derived.
    Invariant: the reference, when set, exists and differs from the current.
    """

    def __init__(self):
        self._images: List[HDRImage] = []
        self._current_id: Optional[int] = None
        self._reference_id: Optional[int] = None
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[HDRImage]:
        return iter(list(self._images))

    def __contains__(self, image_id) -> bool:
        return any(img.id == image_id for img in self._images)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def index_of(self, image_id: int) -> int:
        for i, img in enumerate(self._images):
            if img.id == image_id:
                return i
        raise NotFound(f"No image with id {image_id}")

    def get(self, image_id: int) -> HDRImage:
        return self._images[self.index_of(image_id)]

    def id_at(self, position: int) -> int:
        if not 0 <= position < len(self._images):
            raise InvalidParameter(f"Position {position} out of range ({len(self._images)} images)")
        return self._images[position].id

    @property
    def current_id(self) -> Optional[int]:
        return self._current_id

    @property
    def reference_id(self) -> Optional[int]:
        return self._reference_id

    @property
    def current_index(self) -> Optional[int]:
        return None if self._current_id is None else self.index_of(self._current_id)

    @property
    def reference_index(self) -> Optional[int]:
        return None if self._reference_id is None else self.index_of(self._reference_id)

    def current(self) -> Optional[HDRImage]:
        return None if self._current_id is None else self.get(self._current_id)

    def reference(self) -> Optional[HDRImage]:
        return None if self._reference_id is None else self.get(self._reference_id)

    def next_id(self, step: int = 1) -> Optional[int]:
        """Id of the image ``step`` positions after the current one (wrapping)."""
        if not self._images:
            return None
        if self._current_id is None:
            return self._images[0].id
        idx = (self.index_of(self._current_id) + step) % len(self._images)
        return self._images[idx].id

    def list_images(self) -> List[ImageEntry]:
        return [
            ImageEntry(
                id=img.id,
                display_name=img.name,
                is_current=img.id == self._current_id,
                is_reference=img.id == self._reference_id,
            )
            for img in self._images
        ]

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    def add(self, image: HDRImage) -> int:
        return self.insert(image, len(self._images))

    def insert(self, image: HDRImage, position: int) -> int:
        if not 0 <= position <= len(self._images):
            raise InvalidParameter(f"Insert position {position} out of range ({len(self._images)} images)")
        if image.id is None:
            image.id = next(self._ids)
        elif image.id in self:
            raise InvalidParameter(f"Image {image.id} is already in the stack")
        self._images.insert(position, image)
        if self._current_id is None:
            self._current_id = image.id
        logger.debug(f"[Stack] Added '{image.name}' as #{image.id} at {position}")
        return image.id

    def remove(self, image_id: int) -> HDRImage:
        """
        Remove an image. A selection that pointed at it falls back to the
        image that now occupies its position (or the new last image).
        """
        idx = self.index_of(image_id)
        image = self._images.pop(idx)

        if not self._images:
            self._current_id = None
            self._reference_id = None
        else:
            fallback = self._images[min(idx, len(self._images) - 1)].id
            if self._current_id == image_id:
                self._current_id = fallback
            if self._reference_id == image_id:
                self._reference_id = fallback
            if self._reference_id == self._current_id:
                self._reference_id = None

        logger.debug(f"[Stack] Removed '{image.name}' (#{image_id}); "
                     f"current={self._current_id}, reference={self._reference_id}")
        return image

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def select_current(self, image_id: int):
        """Selecting the reference image as current clears the reference."""
        self.index_of(image_id)
        if image_id == self._reference_id:
            self._reference_id = None
        self._current_id = image_id

    def select_reference(self, image_id: Optional[int]):
        if image_id is None:
            self._reference_id = None
            return
        self.index_of(image_id)
        if image_id == self._current_id:
            raise InvalidParameter(f"Image {image_id} is the current image and cannot be its own reference")
        self._reference_id = image_id

    def set_selection(self, current_id: Optional[int], reference_id: Optional[int]):
        """Restore a (current, reference) pair as a whole."""
        for image_id in (current_id, reference_id):
            if image_id is not None:
                self.index_of(image_id)
        if reference_id is not None and reference_id == current_id:
            raise InvalidParameter("Reference and current image must differ")
        self._current_id = current_id
        self._reference_id = reference_id

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------
    def move(self, image_id: int, position: int):
        idx = self.index_of(image_id)
        if not 0 <= position < len(self._images):
            raise InvalidParameter(f"Position {position} out of range ({len(self._images)} images)")
        self._images.insert(position, self._images.pop(idx))

    def move_forward(self, image_id: int) -> bool:
        """One step towards the end of the list; False at the boundary."""
        idx = self.index_of(image_id)
        if idx >= len(self._images) - 1:
            return False
        self.move(image_id, idx + 1)
        return True

    def move_backward(self, image_id: int) -> bool:
        """One step towards the front of the list; False at the boundary."""
        idx = self.index_of(image_id)
        if idx == 0:
            return False
        self.move(image_id, idx - 1)
        return True

    def view_state(self) -> tuple:
        return (
            tuple(img.view_state() for img in self._images),
            self._current_id,
            self._reference_id,
        )
