"""Per-frame landmark records produced by detection providers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from avatartrack.models.enums import BodySlot, FaceSlot


@dataclass(frozen=True)
class LandmarkPoint:
    """A single detected point in detection-space pixels."""

    x: float
    y: float
    confidence: float
    semantic_id: str

    def is_confident(self, threshold: float) -> bool:
        return self.confidence >= threshold


@dataclass(frozen=True)
class LandmarkFrame:
    """Landmarks for one video frame, keyed by semantic slot.

    Each slot maps to at most one point.  Use :meth:`from_points` to build a
    frame from flat point lists; duplicate slots are rejected there.
    """

    width: int
    height: int
    timestamp: float = 0.0
    body: Mapping[BodySlot, LandmarkPoint] = field(default_factory=dict)
    face: Mapping[FaceSlot, LandmarkPoint] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            msg = f"detection size must be positive, got {self.width}x{self.height}"
            raise ValueError(msg)
        # Freeze the mappings so a published frame cannot be mutated downstream.
        object.__setattr__(self, "body", MappingProxyType(dict(self.body)))
        object.__setattr__(self, "face", MappingProxyType(dict(self.face)))

    @property
    def body_present(self) -> bool:
        return bool(self.body)

    @property
    def face_present(self) -> bool:
        return bool(self.face)

    @property
    def empty(self) -> bool:
        return not self.body and not self.face

    def body_point(self, slot: BodySlot) -> LandmarkPoint | None:
        return self.body.get(slot)

    def face_point(self, slot: FaceSlot) -> LandmarkPoint | None:
        return self.face.get(slot)

    @classmethod
    def from_points(
        cls,
        width: int,
        height: int,
        *,
        body_points: Iterable[LandmarkPoint] = (),
        face_points: Iterable[LandmarkPoint] = (),
        timestamp: float = 0.0,
    ) -> LandmarkFrame:
        """Build a frame from points whose ``semantic_id`` names a slot.

        Body ids are lower-case COCO names (``"left_shoulder"``); face ids are
        :class:`FaceSlot` values.  Unknown ids are ignored.

        Raises
        ------
        ValueError
            If two points claim the same slot.
        """
        body_names = {slot.slot_name: slot for slot in BodySlot}
        body: dict[BodySlot, LandmarkPoint] = {}
        for point in body_points:
            slot = body_names.get(point.semantic_id)
            if slot is None:
                continue
            if slot in body:
                msg = f"duplicate body landmark for slot {point.semantic_id!r}"
                raise ValueError(msg)
            body[slot] = point

        face_names = {slot.value: slot for slot in FaceSlot}
        face: dict[FaceSlot, LandmarkPoint] = {}
        for point in face_points:
            face_slot = face_names.get(point.semantic_id)
            if face_slot is None:
                continue
            if face_slot in face:
                msg = f"duplicate face landmark for slot {point.semantic_id!r}"
                raise ValueError(msg)
            face[face_slot] = point

        return cls(width=width, height=height, timestamp=timestamp, body=body, face=face)
