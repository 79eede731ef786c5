"""avatartrack frame pipeline - normalize, fill, stabilize, retarget."""

from avatartrack.pipeline.channels import ChannelSpec, build_channel_specs
from avatartrack.pipeline.fallback import FallbackGenerator, idle_channels, talk_openness
from avatartrack.pipeline.normalizer import CoordinateNormalizer
from avatartrack.pipeline.rig_mapper import (
    RigMapper,
    blink_factor,
    elbow_anchor,
    neutral_rig_state,
)
from avatartrack.pipeline.stabilizer import ChannelMemory, SmoothingState, TemporalStabilizer

__all__ = [
    "ChannelMemory",
    "ChannelSpec",
    "CoordinateNormalizer",
    "FallbackGenerator",
    "RigMapper",
    "SmoothingState",
    "TemporalStabilizer",
    "blink_factor",
    "build_channel_specs",
    "elbow_anchor",
    "idle_channels",
    "neutral_rig_state",
    "talk_openness",
]
