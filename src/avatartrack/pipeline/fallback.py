"""Procedural idle motion used when detection is missing or unreliable."""

from __future__ import annotations

import math

from avatartrack.config import RigSettings
from avatartrack.models import BodySlot, Channel, Channels, Vec2
from avatartrack.pipeline.channels import ChannelSpec, build_channel_specs

TALK_CYCLE = 5.0

# Idle body layout in shoulder widths relative to the shoulder midpoint
# (image axes: +x right, +y down).
_IDLE_BODY: dict[BodySlot, Vec2] = {
    BodySlot.NOSE: (0.0, -0.71),
    BodySlot.LEFT_EYE: (-0.11, -0.79),
    BodySlot.RIGHT_EYE: (0.11, -0.79),
    BodySlot.LEFT_EAR: (-0.21, -0.71),
    BodySlot.RIGHT_EAR: (0.21, -0.71),
    BodySlot.LEFT_SHOULDER: (-0.5, 0.0),
    BodySlot.RIGHT_SHOULDER: (0.5, 0.0),
    BodySlot.LEFT_ELBOW: (-0.61, 0.5),
    BodySlot.RIGHT_ELBOW: (0.61, 0.5),
    BodySlot.LEFT_WRIST: (-0.68, 0.86),
    BodySlot.RIGHT_WRIST: (0.68, 0.86),
    BodySlot.LEFT_HIP: (-0.29, 0.71),
    BodySlot.RIGHT_HIP: (0.29, 0.71),
    BodySlot.LEFT_KNEE: (-0.32, 1.21),
    BodySlot.RIGHT_KNEE: (0.32, 1.21),
    BodySlot.LEFT_ANKLE: (-0.36, 1.71),
    BodySlot.RIGHT_ANKLE: (0.36, 1.71),
}


def talk_openness(t: float, movement: float, threshold: float) -> float:
    """Mouth openness for a talking burst, or a slow breathing idle.

    The mouth talks while *movement* exceeds *threshold* and during the
    first half of every talk cycle.
    """
    if movement > threshold or (t % TALK_CYCLE) < TALK_CYCLE / 2:
        return math.sin(t / 0.3) * 0.5 + 0.5
    return 0.15 * (math.sin(t / 3.0) * 0.3 + 0.7)


class FallbackGenerator:
    """Deterministic idle motion as a pure function of time.

    Each channel is a sum of sinusoids with its own periods so the loop is
    not visibly repetitive.  Rare larger excursions (a glance to the side, a
    nod) are switched on by slow periodic triggers.  The mouth follows
    :func:`talk_openness`, driven by the generated head movement measured
    in rig units.  The output never depends on anything but *t*, the
    channel clamp table and the rig geometry.
    """

    def __init__(
        self,
        specs: dict[Channel, ChannelSpec] | None = None,
        rig: RigSettings | None = None,
    ) -> None:
        self.specs = specs or build_channel_specs()
        self.rig = rig or RigSettings()

    def sample(self, t: float) -> Channels:
        """Return a value for every channel at time *t*."""
        yaw = 15.0 * math.sin(t / 2.0) + 3.0 * math.sin(t / 0.7)
        if math.sin(t / 10.0) > 0.9:
            # glance
            yaw += 20.0 * math.sin(t * 5.0)
        pitch = 10.0 * math.sin(t / 2.5)
        if math.sin(t / 15.0) > 0.9:
            # nod
            pitch += 15.0 * math.sin(t * 6.0)

        head_x = 0.3 * math.sin(t / 1.5) + 0.05 * math.sin(t / 0.45)
        head_y = 0.2 * math.cos(t / 2.0)
        values: Channels = {
            Channel.HEAD_X: head_x,
            Channel.HEAD_Y: head_y,
            Channel.HEAD_DEPTH: 0.1 * math.sin(t / 3.0) + 0.1,
            Channel.HEAD_PITCH: pitch,
            Channel.HEAD_YAW: yaw,
            Channel.HEAD_ROLL: 5.0 * math.sin(t / 4.0),
            Channel.BODY_X: 0.03 * math.sin(t / 3.0),
            Channel.BODY_Y: 0.02 * math.sin(t / 2.0),
        }
        clamped: Channels = {
            channel: self.specs[channel].clamp(value) for channel, value in values.items()
        }
        s = self.specs
        reach = self.rig.head_travel * self.rig.head_gain
        movement = (
            (abs(s[Channel.HEAD_X].clamp(head_x)) + abs(s[Channel.HEAD_Y].clamp(head_y))) * reach
            + abs(s[Channel.HEAD_YAW].clamp(yaw))
        )
        clamped[Channel.MOUTH_OPEN] = s[Channel.MOUTH_OPEN].clamp(
            talk_openness(t, movement, self.rig.talk_threshold),
        )
        clamped[Channel.BODY] = self._body(t)
        return clamped

    def _body(self, t: float) -> tuple[Vec2 | None, ...]:
        breathing = math.sin(t / 2.0) * 0.035
        sway = math.sin(t / 3.0) * 0.07
        arm_swing = math.sin(t / 1.5 - 0.2) * 0.1
        wrist_x = math.sin(t / 1.2) * 0.18
        wrist_y = math.cos(t / 1.8) * 0.07
        elbow_y = math.cos(t / 2.0) * 0.035

        spec = self.specs[Channel.BODY]
        pose: list[Vec2 | None] = []
        for slot in BodySlot:
            x, y = _IDLE_BODY[slot]
            if slot <= BodySlot.RIGHT_EAR:
                x, y = x + sway, y + breathing
            elif slot in (BodySlot.LEFT_ELBOW, BodySlot.RIGHT_ELBOW):
                x, y = x + arm_swing, y + elbow_y
            elif slot in (BodySlot.LEFT_WRIST, BodySlot.RIGHT_WRIST):
                x, y = x + wrist_x, y + wrist_y
            elif slot in (BodySlot.LEFT_HIP, BodySlot.RIGHT_HIP):
                x = x - sway * 0.6
            pose.append((spec.clamp(x), spec.clamp(y)))
        return tuple(pose)


def idle_channels(t: float) -> Channels:
    """Fallback channels at *t* using the default clamp table."""
    return FallbackGenerator().sample(t)
