"""Detection provider protocol and the adapter that shields the pipeline from it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias, runtime_checkable

from avatartrack.models import DetectionStatus, LandmarkFrame

logger = logging.getLogger(__name__)


@runtime_checkable
class DetectionProvider(Protocol):
    """Protocol for landmark detectors.

    ``detect`` may suspend (off-thread inference) and may raise; callers go
    through :class:`DetectionAdapter` which never does.
    """

    def name(self) -> str:
        """Short identifier used in logs."""
        ...

    async def detect(self, image: Any) -> LandmarkFrame | None:
        """Return landmarks for *image*, or ``None`` when nobody is visible."""
        ...

    async def close(self) -> None:
        """Release detector resources."""
        ...


@dataclass(frozen=True)
class Detected:
    frame: LandmarkFrame
    status: DetectionStatus = DetectionStatus.DETECTED


@dataclass(frozen=True)
class Unavailable:
    status: DetectionStatus = DetectionStatus.UNAVAILABLE


@dataclass(frozen=True)
class Errored:
    error: BaseException
    status: DetectionStatus = DetectionStatus.ERRORED


DetectionResult: TypeAlias = Detected | Unavailable | Errored


class DetectionAdapter:
    """Wraps a provider so that acquisition always yields a typed result."""

    def __init__(self, provider: DetectionProvider) -> None:
        self.provider = provider
        self._consecutive_errors = 0

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    async def acquire(self, image: Any) -> DetectionResult:
        try:
            frame = await self.provider.detect(image)
        except Exception as exc:
            self._consecutive_errors += 1
            # Log the first failure of a streak loudly, then stay quiet.
            if self._consecutive_errors == 1:
                logger.warning("Detector %s failed: %s", self.provider.name(), exc)
            else:
                logger.debug("Detector %s failed again (%d in a row)",
                             self.provider.name(), self._consecutive_errors)
            return Errored(exc)

        self._consecutive_errors = 0
        if frame is None or frame.empty:
            return Unavailable()
        return Detected(frame)

    async def close(self) -> None:
        try:
            await self.provider.close()
        except Exception:
            logger.exception("Error closing detector %s", self.provider.name())
