"""Per-channel units, clamp ranges and smoothing behaviour."""

from __future__ import annotations

from dataclasses import dataclass

from avatartrack.config import ClampSettings
from avatartrack.models import Channel


@dataclass(frozen=True)
class ChannelSpec:
    """Static description of one channel.

    ``large_delta``/``medium_delta`` are the movement thresholds (in channel
    units) above which smoothing is relaxed.  ``gain`` scales the configured
    smoothing level for this channel and ``max_alpha`` caps the result.
    ``max_step`` bounds the change of the published value per frame.
    """

    unit: str
    low: float
    high: float
    large_delta: float
    medium_delta: float
    max_step: float
    gain: float = 1.0
    max_alpha: float = 0.95

    def clamp(self, value: float) -> float:
        return max(self.low, min(self.high, value))


def build_channel_specs(clamps: ClampSettings | None = None) -> dict[Channel, ChannelSpec]:
    """Return a :class:`ChannelSpec` for every channel, ranges taken from *clamps*."""
    c = clamps or ClampSettings()
    return {
        Channel.HEAD_X: ChannelSpec("unit", -1.0, 1.0, 0.2, 0.1, 0.2),
        Channel.HEAD_Y: ChannelSpec("unit", -1.0, 1.0, 0.2, 0.1, 0.2),
        # Depth is noisier than position; smooth it a little harder.
        Channel.HEAD_DEPTH: ChannelSpec(
            "unit", -c.head_depth, c.head_depth, 0.1, 0.05, 0.05, gain=1.15,
        ),
        Channel.HEAD_PITCH: ChannelSpec("deg", -c.head_pitch, c.head_pitch, 10.0, 5.0, 8.0),
        Channel.HEAD_YAW: ChannelSpec("deg", -c.head_yaw, c.head_yaw, 10.0, 5.0, 8.0),
        Channel.HEAD_ROLL: ChannelSpec("deg", -c.head_roll, c.head_roll, 10.0, 5.0, 8.0),
        Channel.MOUTH_OPEN: ChannelSpec("unit", 0.0, 1.0, 0.3, 0.15, 0.35),
        Channel.BODY_X: ChannelSpec("unit", -1.0, 1.0, 0.2, 0.1, 0.15),
        Channel.BODY_Y: ChannelSpec("unit", -1.0, 1.0, 0.2, 0.1, 0.15),
        # Body keypoints in shoulder widths; range bounds each coordinate.
        Channel.BODY: ChannelSpec(
            "shoulder_width", -4.0, 4.0, 0.25, 0.12, 0.25, gain=1.2, max_alpha=0.9,
        ),
    }
