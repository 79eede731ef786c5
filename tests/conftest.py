"""Shared fixtures for avatartrack tests."""

from __future__ import annotations

import pytest

from avatartrack.config import AppConfig, ClampSettings, RigSettings, SmoothingSettings
from avatartrack.models import BodySlot, FaceSlot, LandmarkFrame, LandmarkPoint


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualHandle:
    def __init__(self, callback) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Frame scheduler that records callbacks instead of running them."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, ManualHandle]] = []

    def call_later(self, delay, callback) -> ManualHandle:
        handle = ManualHandle(callback)
        self.calls.append((delay, handle))
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for _, h in self.calls if not h.cancelled]


def make_frame(
    body: dict[BodySlot, tuple[float, float]] | None = None,
    face: dict[FaceSlot, tuple[float, float]] | None = None,
    *,
    confidence: float = 0.9,
    width: int = 640,
    height: int = 480,
) -> LandmarkFrame:
    return LandmarkFrame(
        width=width,
        height=height,
        body={
            slot: LandmarkPoint(x, y, confidence, slot.slot_name)
            for slot, (x, y) in (body or {}).items()
        },
        face={
            slot: LandmarkPoint(x, y, confidence, slot.value)
            for slot, (x, y) in (face or {}).items()
        },
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(10.0)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def rig_settings() -> RigSettings:
    return RigSettings()


@pytest.fixture
def clamp_settings() -> ClampSettings:
    return ClampSettings()


@pytest.fixture
def smoothing() -> SmoothingSettings:
    return SmoothingSettings()


@pytest.fixture
def upright_frame() -> LandmarkFrame:
    """Shoulders 200 px apart, arms hanging, face centred and level."""
    return make_frame(
        body={
            BodySlot.LEFT_SHOULDER: (220.0, 300.0),
            BodySlot.RIGHT_SHOULDER: (420.0, 300.0),
            BodySlot.LEFT_ELBOW: (200.0, 380.0),
            BodySlot.RIGHT_ELBOW: (440.0, 380.0),
            BodySlot.LEFT_WRIST: (195.0, 460.0),
            BodySlot.RIGHT_WRIST: (445.0, 460.0),
        },
        face={
            FaceSlot.NOSE_TIP: (320.0, 240.0 + 0.55 * 76.8),
            FaceSlot.LEFT_EYE: (281.6, 240.0),
            FaceSlot.RIGHT_EYE: (358.4, 240.0),
            FaceSlot.MOUTH_LEFT: (300.0, 320.0),
            FaceSlot.MOUTH_RIGHT: (340.0, 320.0),
            FaceSlot.MOUTH_TOP: (320.0, 315.0),
            FaceSlot.MOUTH_BOTTOM: (320.0, 325.0),
        },
    )


@pytest.fixture
def frame_factory():
    return make_frame
