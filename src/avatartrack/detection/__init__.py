"""Detection provider adapters."""

from __future__ import annotations

import time
from collections.abc import Callable

from avatartrack.config import DetectionSettings
from avatartrack.detection.base import (
    DetectionAdapter,
    DetectionProvider,
    DetectionResult,
    Detected,
    Errored,
    Unavailable,
)
from avatartrack.detection.synthetic import (
    ScriptedDetectionProvider,
    SyntheticDetectionProvider,
    synthetic_person,
)


def create_provider(
    settings: DetectionSettings,
    *,
    surface: tuple[int, int] = (640, 480),
    clock: Callable[[], float] = time.monotonic,
) -> DetectionProvider:
    """Instantiate the provider named in *settings*.

    MediaPipe is imported lazily so the optional dependency is only needed
    when it is selected.
    """
    if settings.provider == "mediapipe":
        from avatartrack.detection.mediapipe_provider import MediaPipeDetectionProvider

        return MediaPipeDetectionProvider(
            mirror=settings.mirror,
            model_complexity=settings.model_complexity,
            min_detection_confidence=settings.min_detection_confidence,
            min_tracking_confidence=settings.min_tracking_confidence,
        )
    return SyntheticDetectionProvider(surface[0], surface[1], clock=clock)


__all__ = [
    "Detected",
    "DetectionAdapter",
    "DetectionProvider",
    "DetectionResult",
    "Errored",
    "ScriptedDetectionProvider",
    "SyntheticDetectionProvider",
    "Unavailable",
    "create_provider",
    "synthetic_person",
]
