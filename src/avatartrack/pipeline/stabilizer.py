"""Temporal stabilization: adaptive exponential smoothing per channel."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from avatartrack.config import SmoothingSettings
from avatartrack.models import BodyPose, Channel, Channels, ChannelValue, DetectionStatus, Vec2
from avatartrack.pipeline.channels import ChannelSpec, build_channel_specs


@dataclass
class ChannelMemory:
    value: ChannelValue
    updated_at: float


@dataclass
class SmoothingState:
    """Last published value per channel for one tracking session."""

    channels: dict[Channel, ChannelMemory] = field(default_factory=dict)

    def last(self, channel: Channel) -> ChannelValue | None:
        memory = self.channels.get(channel)
        return memory.value if memory is not None else None

    def reset(self) -> None:
        self.channels.clear()

    def __len__(self) -> int:
        return len(self.channels)


class TemporalStabilizer:
    """Combines real and fallback candidates with the last published values.

    Detected frames use adaptive smoothing (``last * a + new * (1 - a)``,
    with ``a`` lowered for large movements).  Frames without detection relax
    toward the fallback at the fixed ``fallback_blend`` ratio.  Updates without
    detection are additionally rate limited to the channel's ``max_step``.
    """

    def __init__(
        self,
        settings: SmoothingSettings | None = None,
        specs: dict[Channel, ChannelSpec] | None = None,
    ) -> None:
        self.settings = settings or SmoothingSettings()
        self.specs = specs or build_channel_specs()

    def stabilize(
        self,
        state: SmoothingState,
        status: DetectionStatus,
        observed: Channels,
        fallback: Channels,
        timestamp: float,
    ) -> Channels:
        """Update *state* in place and return the stabilized channel values.

        Channels with neither a real nor a fallback candidate are omitted
        from the result; their memory is kept.
        """
        out: Channels = {}
        detected = status is DetectionStatus.DETECTED
        for channel in Channel:
            real = observed.get(channel) if detected else None
            synth = fallback.get(channel)
            last = state.last(channel)

            if channel is Channel.BODY:
                value: ChannelValue | None = self._stabilize_body(real, synth, last, detected)
            elif detected:
                candidate = real if real is not None else synth
                value = None if candidate is None else self.smooth(channel, candidate, last)
            else:
                value = None if synth is None else self.blend(channel, synth, last)

            if value is None:
                continue
            state.channels[channel] = ChannelMemory(value, timestamp)
            out[channel] = value
        return out

    # ------------------------------------------------------------------
    # Scalar rules
    # ------------------------------------------------------------------

    def alpha(self, channel: Channel, delta: float) -> float:
        """Smoothing factor for a movement of *delta* channel units."""
        s = self.settings
        spec = self.specs[channel]
        base = min(s.level * spec.gain, spec.max_alpha, s.max_alpha)
        # Lowering only ever reduces the factor; the floors never raise it.
        if delta > spec.large_delta:
            return min(base, max(s.large_floor, base - s.large_drop))
        if delta > spec.medium_delta:
            return min(base, max(s.medium_floor, base - s.medium_drop))
        return base

    def smooth(self, channel: Channel, new: ChannelValue, last: ChannelValue | None) -> float:
        if not isinstance(new, float | int):
            msg = f"channel {channel} expects a scalar, got {type(new).__name__}"
            raise TypeError(msg)
        if not isinstance(last, float | int) or not math.isfinite(last):
            return float(new)
        a = self.alpha(channel, abs(new - last))
        return last * a + new * (1.0 - a)

    def blend(self, channel: Channel, synth: ChannelValue, last: ChannelValue | None) -> float:
        if not isinstance(synth, float | int):
            msg = f"channel {channel} expects a scalar, got {type(synth).__name__}"
            raise TypeError(msg)
        if not isinstance(last, float | int) or not math.isfinite(last):
            return float(synth)
        b = self.settings.fallback_blend
        return self._limit(channel, synth * b + last * (1.0 - b), last)

    def _limit(self, channel: Channel, value: float, last: float) -> float:
        if not self.settings.rate_limit:
            return value
        max_step = self.specs[channel].max_step
        step = value - last
        if abs(step) > max_step:
            return last + math.copysign(max_step, step)
        return value

    # ------------------------------------------------------------------
    # Body keypoint array
    # ------------------------------------------------------------------

    def _stabilize_body(
        self,
        real: ChannelValue | None,
        synth: ChannelValue | None,
        last: ChannelValue | None,
        detected: bool,
    ) -> BodyPose | None:
        real_pose = real if isinstance(real, tuple) else None
        synth_pose = synth if isinstance(synth, tuple) else None
        last_pose = last if isinstance(last, tuple) else None

        if detected and real_pose is not None:
            # Slots the detector missed are filled from the idle pose.
            candidate = tuple(
                point if point is not None else _at(synth_pose, i)
                for i, point in enumerate(real_pose)
            )
        elif synth_pose is not None:
            candidate = synth_pose
        else:
            return None

        if last_pose is None:
            return candidate

        use_blend = not detected
        result: list[Vec2 | None] = []
        for i, new_point in enumerate(candidate):
            # Entries with no counterpart in the previous pose pass through.
            old_point = _at(last_pose, i)
            if new_point is None:
                result.append(old_point)
            elif old_point is None:
                result.append(new_point)
            elif use_blend:
                result.append(self._blend_point(new_point, old_point))
            else:
                result.append(self._smooth_point(new_point, old_point))
        return tuple(result)

    def _smooth_point(self, new: Vec2, old: Vec2) -> Vec2:
        delta = math.hypot(new[0] - old[0], new[1] - old[1])
        a = self.alpha(Channel.BODY, delta)
        return (old[0] * a + new[0] * (1.0 - a), old[1] * a + new[1] * (1.0 - a))

    def _blend_point(self, synth: Vec2, old: Vec2) -> Vec2:
        b = self.settings.fallback_blend
        return self._limit_point(
            (synth[0] * b + old[0] * (1.0 - b), synth[1] * b + old[1] * (1.0 - b)), old,
        )

    def _limit_point(self, value: Vec2, old: Vec2) -> Vec2:
        if not self.settings.rate_limit:
            return value
        max_step = self.specs[Channel.BODY].max_step
        dx, dy = value[0] - old[0], value[1] - old[1]
        dist = math.hypot(dx, dy)
        if dist <= max_step:
            return value
        k = max_step / dist
        return (old[0] + dx * k, old[1] + dy * k)


def _at(pose: BodyPose | None, index: int) -> Vec2 | None:
    if pose is None or index >= len(pose):
        return None
    return pose[index]
