"""Tracking session: owns the frame loop and all per-session state."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from avatartrack.config import AppConfig
from avatartrack.detection.base import Detected, DetectionAdapter, DetectionResult
from avatartrack.models import (
    REQUIRED_CHANNELS,
    Channels,
    DetectionStatus,
    RigSource,
    RigState,
    SessionState,
)
from avatartrack.pipeline import (
    CoordinateNormalizer,
    FallbackGenerator,
    RigMapper,
    SmoothingState,
    TemporalStabilizer,
    build_channel_specs,
)
from avatartrack.render.base import Renderer

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class FrameScheduler(Protocol):
    """Schedules the next frame callback after *delay* seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioFrameScheduler:
    """Schedules frames on the running asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


def frame_source_flag(status: DetectionStatus, observed: Channels) -> RigSource:
    """Classify a frame by how much of it came from real detection."""
    if status is not DetectionStatus.DETECTED or not observed:
        return RigSource.FALLBACK
    if all(channel in observed for channel in REQUIRED_CHANNELS):
        return RigSource.DETECTED
    return RigSource.PARTIAL


class TrackingSession:
    """Runs acquire, normalize, fill, stabilize, retarget and publish per frame.

    Frames are chained: the next frame is scheduled only after the current
    one has finished, so at most one detection is ever in flight.  ``stop``
    bumps a generation counter; a detection that completes after ``stop``
    belongs to an old generation and its result is discarded.  A ``start``
    issued while such a detection is still running waits for it to finish
    before the first new frame.
    """

    def __init__(
        self,
        adapter: DetectionAdapter,
        renderer: Renderer,
        *,
        config: AppConfig | None = None,
        frame_source: Callable[[], Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
        scheduler: FrameScheduler | None = None,
    ) -> None:
        self.adapter = adapter
        self.renderer = renderer
        self.frame_source = frame_source
        self._clock = clock
        self._scheduler: FrameScheduler = scheduler or AsyncioFrameScheduler()

        self._state = SessionState.IDLE
        self._generation = 0
        self._frame_id = 0
        self._handle: Cancellable | None = None
        self._task: asyncio.Task[RigState | None] | None = None
        self._pending_config: AppConfig | None = None
        self._last_rig: RigState | None = None
        self.smoothing = SmoothingState()
        self._apply_config(config or AppConfig())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def last_published(self) -> RigState | None:
        return self._last_rig

    def start(self) -> None:
        """Begin the frame loop.  Calling it while active does nothing."""
        if self._state is SessionState.ACTIVE:
            return
        self.smoothing = SmoothingState()
        self._last_rig = None
        self._state = SessionState.ACTIVE
        logger.info(
            "Tracking session started (provider=%s, %.0f fps)",
            self.adapter.provider.name(), self._config.session.target_fps,
        )
        if self._task is not None and not self._task.done():
            # A detection from before the last stop is still in flight.
            generation = self._generation
            self._task.add_done_callback(lambda _task: self._resume(generation))
        else:
            self._schedule(0.0)

    def stop(self) -> None:
        """Stop the loop, discard smoothing memory and publish the neutral pose.

        Safe to call in either state.
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1
        was_active = self._state is SessionState.ACTIVE
        self._state = SessionState.IDLE
        self.smoothing.reset()
        self._last_rig = None

        neutral = self.mapper.neutral(frame_id=self._frame_id, timestamp=self._clock())
        self._frame_id += 1
        self.renderer.publish(neutral)
        if was_active:
            logger.info("Tracking session stopped")

    def update_config(self, config: AppConfig) -> None:
        """Stage *config*; it takes effect at the next frame boundary."""
        self._pending_config = config

    async def close(self) -> None:
        self.stop()
        if self._task is not None and not self._task.done():
            await self._task
        await self.adapter.close()

    async def __aenter__(self) -> TrackingSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def _schedule(self, delay: float) -> None:
        generation = self._generation
        self._handle = self._scheduler.call_later(delay, lambda: self._on_tick(generation))

    def _resume(self, generation: int) -> None:
        if generation == self._generation and self._state is SessionState.ACTIVE:
            self._schedule(0.0)

    def _on_tick(self, generation: int) -> None:
        self._handle = None
        if generation != self._generation or self._state is not SessionState.ACTIVE:
            return
        self._task = asyncio.ensure_future(self._run_frame(generation))

    async def _run_frame(self, generation: int) -> RigState | None:
        if generation != self._generation:
            return None
        started = self._clock()
        rig = await self.step()
        if generation == self._generation and self._state is SessionState.ACTIVE:
            elapsed = self._clock() - started
            self._schedule(max(0.0, self._config.session.frame_interval - elapsed))
        return rig

    async def step(self) -> RigState | None:
        """Run one frame and return the published state.

        Returns ``None`` when the frame failed or its detection result
        arrived after the session was stopped.
        """
        try:
            return await self._frame()
        except Exception:
            logger.exception("Frame %d failed; continuing", self._frame_id)
            return None

    async def _frame(self) -> RigState | None:
        generation = self._generation
        if self._pending_config is not None:
            self._apply_config(self._pending_config)
            self._pending_config = None

        image = self.frame_source() if self.frame_source is not None else None
        result = await self.adapter.acquire(image)
        if generation != self._generation:
            logger.debug("Discarding detection result from stopped generation %d", generation)
            return None

        t = self._clock()
        rig = self.process(result, t)
        self.renderer.publish(rig)
        return rig

    def process(self, result: DetectionResult, t: float) -> RigState:
        """Turn one detection result into a rig state, updating smoothing memory."""
        observed: Channels = {}
        if isinstance(result, Detected):
            observed = self.normalizer.normalize(result.frame, self._config.session.surface)
        fallback = self.fallback.sample(t)
        channels = self.stabilizer.stabilize(self.smoothing, result.status, observed, fallback, t)
        rig = self.mapper.map(
            channels,
            t,
            previous=self._last_rig,
            frame_id=self._frame_id,
            source=frame_source_flag(result.status, observed),
        )
        self._frame_id += 1
        self._last_rig = rig
        return rig

    def _apply_config(self, config: AppConfig) -> None:
        self._config = config
        specs = build_channel_specs(config.clamps)
        self.normalizer = CoordinateNormalizer(config.normalizer, specs)
        self.fallback = FallbackGenerator(specs, config.rig)
        self.stabilizer = TemporalStabilizer(config.smoothing, specs)
        self.mapper = RigMapper(config.rig, config.clamps)
