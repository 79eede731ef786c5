"""Normalized channel value types."""

from __future__ import annotations

from typing import TypeAlias

from avatartrack.models.enums import BodySlot, Channel

Vec2: TypeAlias = tuple[float, float]

# One entry per BodySlot; None where the slot was absent or gated out.
BodyPose: TypeAlias = tuple[Vec2 | None, ...]

ChannelValue: TypeAlias = float | BodyPose

# Partial or complete set of channel values for one frame.
Channels: TypeAlias = dict[Channel, ChannelValue]

BODY_SLOT_COUNT = len(BodySlot)

SCALAR_CHANNELS: tuple[Channel, ...] = tuple(c for c in Channel if c is not Channel.BODY)

# Channels every complete frame must carry before retargeting.  The mouth
# channel is optional: the rig mapper synthesises mouth motion without it.
REQUIRED_CHANNELS: frozenset[Channel] = frozenset(Channel) - {Channel.MOUTH_OPEN}


def empty_body_pose() -> BodyPose:
    return (None,) * BODY_SLOT_COUNT
