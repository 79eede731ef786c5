"""Synthetic detection providers for offline runs and testing."""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from avatartrack.models import BodySlot, FaceSlot, LandmarkFrame, LandmarkPoint


class SyntheticDetectionProvider:
    """Produces a plausible, deterministic moving person from a clock.

    Useful for exercising the full pipeline without a camera or model.
    ``dropouts`` lists ``(start, end)`` clock intervals during which nobody is
    detected; ``failures`` lists intervals during which ``detect`` raises.
    """

    def __init__(
        self,
        width: int = 640,
        height: int = 480,
        *,
        clock: Callable[[], float] = time.monotonic,
        confidence: float = 0.9,
        dropouts: Iterable[tuple[float, float]] = (),
        failures: Iterable[tuple[float, float]] = (),
        latency: float = 0.0,
    ) -> None:
        self.width = width
        self.height = height
        self.confidence = confidence
        self._clock = clock
        self._dropouts = list(dropouts)
        self._failures = list(failures)
        self._latency = latency
        self.calls = 0

    def name(self) -> str:
        return "synthetic"

    async def detect(self, image: Any) -> LandmarkFrame | None:
        self.calls += 1
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        t = self._clock()
        if _inside(t, self._failures):
            msg = f"synthetic detector failure at t={t:.3f}"
            raise RuntimeError(msg)
        if _inside(t, self._dropouts):
            return None
        return synthetic_person(t, self.width, self.height, confidence=self.confidence)

    async def close(self) -> None:
        pass


class ScriptedDetectionProvider:
    """Replays a fixed script of detector outcomes, one per call.

    Items may be a :class:`LandmarkFrame`, ``None`` (nobody detected) or an
    exception instance, which is raised.  Once the script is exhausted every
    call returns ``None``.
    """

    def __init__(self, script: Iterable[LandmarkFrame | BaseException | None]) -> None:
        self._script: deque[LandmarkFrame | BaseException | None] = deque(script)
        self.calls = 0
        self.closed = False

    def name(self) -> str:
        return "scripted"

    async def detect(self, image: Any) -> LandmarkFrame | None:
        self.calls += 1
        if not self._script:
            return None
        item = self._script.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def synthetic_person(
    t: float,
    width: int = 640,
    height: int = 480,
    *,
    confidence: float = 0.9,
) -> LandmarkFrame:
    """Landmarks of a waving, talking person at time *t* (seconds)."""
    cx = width / 2 + math.sin(t / 3.0) * width * 0.03
    cy = height * 0.55 + math.sin(t / 2.0) * height * 0.01
    shoulder = width * 0.28
    limb = width * 0.14

    ls = (cx - shoulder / 2, cy + math.sin(t / 4.0) * shoulder * 0.05)
    rs = (cx + shoulder / 2, cy - math.sin(t / 4.0) * shoulder * 0.05)

    def arm(origin: tuple[float, float], outward: float, phase: float) -> tuple[tuple[float, float], ...]:
        upper = math.radians(35.0 + 30.0 * math.sin(t * 0.9 + phase))
        fore = upper + math.radians(-40.0 + 35.0 * math.sin(t * 1.4 + phase))
        elbow = (origin[0] + outward * math.cos(upper) * limb, origin[1] + math.sin(upper) * limb)
        wrist = (elbow[0] + outward * math.cos(fore) * limb, elbow[1] + math.sin(fore) * limb)
        return elbow, wrist

    le, lw = arm(ls, -1.0, 0.0)
    re, rw = arm(rs, 1.0, math.pi)

    yaw = math.radians(12.0 * math.sin(t / 2.2))
    eye_full = width * 0.12
    eye_dx = eye_full * math.cos(yaw)
    head_x = cx + math.sin(t / 1.7) * width * 0.02
    eye_y = cy - shoulder * 0.95
    nose = (head_x, eye_y + 0.55 * eye_full + math.sin(t / 2.5) * eye_full * 0.05)
    left_eye = (head_x - eye_dx / 2, eye_y)
    right_eye = (head_x + eye_dx / 2, eye_y + math.sin(t / 3.3) * eye_full * 0.05)
    mouth_w = width * 0.07
    mouth_h = mouth_w * (0.05 + 0.15 * max(0.0, math.sin(t * 7.0)))
    mouth_y = nose[1] + eye_full * 0.35

    body = {
        BodySlot.NOSE: nose,
        BodySlot.LEFT_EYE: left_eye,
        BodySlot.RIGHT_EYE: right_eye,
        BodySlot.LEFT_EAR: (head_x - eye_full * 0.9, eye_y + 4.0),
        BodySlot.RIGHT_EAR: (head_x + eye_full * 0.9, eye_y + 4.0),
        BodySlot.LEFT_SHOULDER: ls,
        BodySlot.RIGHT_SHOULDER: rs,
        BodySlot.LEFT_ELBOW: le,
        BodySlot.RIGHT_ELBOW: re,
        BodySlot.LEFT_WRIST: lw,
        BodySlot.RIGHT_WRIST: rw,
        BodySlot.LEFT_HIP: (cx - shoulder * 0.3, cy + shoulder * 1.2),
        BodySlot.RIGHT_HIP: (cx + shoulder * 0.3, cy + shoulder * 1.2),
    }
    face = {
        FaceSlot.NOSE_TIP: nose,
        FaceSlot.FOREHEAD: (head_x, eye_y - eye_full * 0.6),
        FaceSlot.LEFT_EYE: left_eye,
        FaceSlot.RIGHT_EYE: right_eye,
        FaceSlot.LEFT_CHEEK: (head_x - eye_dx * 0.7, nose[1]),
        FaceSlot.RIGHT_CHEEK: (head_x + eye_dx * 0.7, nose[1]),
        FaceSlot.MOUTH_LEFT: (head_x - mouth_w / 2, mouth_y),
        FaceSlot.MOUTH_RIGHT: (head_x + mouth_w / 2, mouth_y),
        FaceSlot.MOUTH_TOP: (head_x, mouth_y - mouth_h / 2),
        FaceSlot.MOUTH_BOTTOM: (head_x, mouth_y + mouth_h / 2),
    }
    return LandmarkFrame(
        width=width,
        height=height,
        timestamp=t,
        body={
            slot: LandmarkPoint(x, y, confidence, slot.slot_name) for slot, (x, y) in body.items()
        },
        face={
            slot: LandmarkPoint(x, y, confidence, slot.value) for slot, (x, y) in face.items()
        },
    )


def _inside(t: float, windows: list[tuple[float, float]]) -> bool:
    return any(start <= t < end for start, end in windows)
