"""Kinematic retargeting of stabilized channels onto the fixed 2D rig.

Rig space: origin at the avatar centre, +x right, +y down, lengths in rig
units before the global ``scale``.  Arm angles are measured in each arm's
outward frame (0 = horizontal away from the body, positive = downward) so
the same clamp range serves both arms.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import TypeVar

from avatartrack.config import ClampSettings, RigSettings
from avatartrack.errors import MappingError
from avatartrack.models import (
    BODY_SLOT_COUNT,
    ArmRig,
    BodyPose,
    BodySlot,
    Channel,
    Channels,
    EyebrowRig,
    EyeRig,
    HeadRig,
    MouthRig,
    RigSource,
    RigState,
    TorsoRig,
    Vec2,
)
from avatartrack.pipeline.fallback import talk_openness

logger = logging.getLogger(__name__)

T = TypeVar("T")

LEFT = -1.0
RIGHT = 1.0

BLINK_INTERVAL = 5.0
BLINK_LENGTH = 0.15


def _clamp(value: float, limit: float) -> float:
    return max(-limit, min(limit, value))


def _wrap_degrees(angle: float) -> float:
    return (angle + 180.0) % 360.0 - 180.0


def _line_angle(dx: float, dy: float) -> float:
    if dx < 0:
        dx, dy = -dx, -dy
    return math.degrees(math.atan2(dy, dx))


def elbow_anchor(shoulder: Vec2, upper_angle: float, length: float, outward: float) -> Vec2:
    """Forearm anchor: the shoulder moved *length* along the upper segment."""
    rad = math.radians(upper_angle)
    return (shoulder[0] + outward * math.cos(rad) * length, shoulder[1] + math.sin(rad) * length)


def blink_factor(t: float) -> float:
    """Eye openness multiplier for procedural blinks (1.0 when not blinking)."""
    jitter = math.sin(t / 9.777) * 2.0
    phase = (t + jitter) % BLINK_INTERVAL
    if phase >= BLINK_LENGTH:
        return 1.0
    return 1.0 - math.sin(phase / BLINK_LENGTH * math.pi) * 0.9


def neutral_rig_state(
    rig: RigSettings | None = None,
    *,
    frame_id: int = 0,
    timestamp: float = 0.0,
) -> RigState:
    """The reset pose: everything centred, arms at rest, no idle motion."""
    r = rig or RigSettings()

    def rest_arm(outward: float) -> ArmRig:
        shoulder = (outward * r.shoulder_half_width, r.shoulder_y)
        elbow = elbow_anchor(shoulder, r.rest_upper_angle, r.upper_arm_length, outward)
        return ArmRig(
            shoulder_x=shoulder[0],
            shoulder_y=shoulder[1],
            upper_angle=r.rest_upper_angle,
            forearm_angle=0.0,
            elbow_x=elbow[0],
            elbow_y=elbow[1],
        )

    return RigState(
        frame_id=frame_id,
        timestamp=timestamp,
        source=RigSource.NEUTRAL,
        scale=r.scale,
        head=HeadRig(),
        left_eye=EyeRig(center_x=-r.eye_spacing),
        right_eye=EyeRig(center_x=r.eye_spacing),
        left_eyebrow=EyebrowRig(y=r.eyebrow_y),
        right_eyebrow=EyebrowRig(y=r.eyebrow_y),
        mouth=MouthRig(),
        torso=TorsoRig(),
        left_arm=rest_arm(LEFT),
        right_arm=rest_arm(RIGHT),
    )


class RigMapper:
    """Builds one complete :class:`RigState` from a stabilized channel set.

    Each rig component is mapped independently.  A component whose inputs
    are missing or malformed raises :class:`MappingError` internally and is
    replaced by its value in ``previous`` (or the neutral pose), so one bad
    channel never affects unrelated joints.
    """

    def __init__(self, rig: RigSettings | None = None, clamps: ClampSettings | None = None) -> None:
        self.rig = rig or RigSettings()
        self.clamps = clamps or ClampSettings()
        self._neutral = neutral_rig_state(self.rig)

    def neutral(self, *, frame_id: int = 0, timestamp: float = 0.0) -> RigState:
        return self._neutral.model_copy(update={"frame_id": frame_id, "timestamp": timestamp})

    def map(
        self,
        channels: Channels,
        t: float,
        *,
        previous: RigState | None = None,
        frame_id: int = 0,
        source: RigSource = RigSource.DETECTED,
    ) -> RigState:
        base = previous or self._neutral

        shoulders = self._recover(
            "shoulders",
            lambda: self._shoulders(channels),
            ((base.left_arm.shoulder_x, base.left_arm.shoulder_y),
             (base.right_arm.shoulder_x, base.right_arm.shoulder_y)),
        )
        left_arm = self._recover(
            "left_arm", lambda: self._arm(channels, LEFT, shoulders[0]), base.left_arm,
        )
        right_arm = self._recover(
            "right_arm", lambda: self._arm(channels, RIGHT, shoulders[1]), base.right_arm,
        )
        torso_rotation = self._recover(
            "torso", lambda: self._torso_rotation(channels), base.torso.rotation,
        )
        head = self._recover("head", lambda: self._head(channels), base.head)
        eyes = self._recover(
            "eyes", lambda: self._eyes(channels, t), (base.left_eye, base.right_eye),
        )
        brows = self._recover(
            "eyebrows",
            lambda: self._eyebrows(channels, t),
            (base.left_eyebrow, base.right_eyebrow),
        )
        mouth = self._recover("mouth", lambda: self._mouth(channels, head, t), base.mouth)

        return RigState(
            frame_id=frame_id,
            timestamp=t,
            source=source,
            scale=self.rig.scale,
            head=head,
            left_eye=eyes[0],
            right_eye=eyes[1],
            left_eyebrow=brows[0],
            right_eyebrow=brows[1],
            mouth=mouth,
            torso=self._torso(torso_rotation, t),
            left_arm=left_arm,
            right_arm=right_arm,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def _shoulders(self, channels: Channels) -> tuple[Vec2, Vec2]:
        r, c = self.rig, self.clamps
        shift = _clamp(_scalar(channels, Channel.BODY_X) * r.shoulder_gain_x, c.shoulder_travel_x)
        y = r.shoulder_y + _scalar(channels, Channel.BODY_Y) * r.shoulder_gain_y
        y = max(c.shoulder_y_min, min(c.shoulder_y_max, y))
        return ((-r.shoulder_half_width + shift, y), (r.shoulder_half_width + shift, y))

    def _arm(self, channels: Channels, outward: float, shoulder: Vec2) -> ArmRig:
        body = _body(channels)
        if outward == LEFT:
            slots = (BodySlot.LEFT_SHOULDER, BodySlot.LEFT_ELBOW, BodySlot.LEFT_WRIST)
        else:
            slots = (BodySlot.RIGHT_SHOULDER, BodySlot.RIGHT_ELBOW, BodySlot.RIGHT_WRIST)
        src_shoulder, src_elbow, src_wrist = (_point(body, slot) for slot in slots)

        raw_upper = math.degrees(math.atan2(
            src_elbow[1] - src_shoulder[1], outward * (src_elbow[0] - src_shoulder[0]),
        ))
        upper = _clamp(raw_upper, self.clamps.upper_arm)
        raw_fore = math.degrees(math.atan2(
            src_wrist[1] - src_elbow[1], outward * (src_wrist[0] - src_elbow[0]),
        ))
        forearm = _clamp(_wrap_degrees(raw_fore - upper), self.clamps.forearm)

        elbow = elbow_anchor(shoulder, upper, self.rig.upper_arm_length, outward)
        return ArmRig(
            shoulder_x=shoulder[0],
            shoulder_y=shoulder[1],
            upper_angle=upper,
            forearm_angle=forearm,
            elbow_x=elbow[0],
            elbow_y=elbow[1],
        )

    def _torso_rotation(self, channels: Channels) -> float:
        body = _body(channels)
        ls = _point(body, BodySlot.LEFT_SHOULDER)
        rs = _point(body, BodySlot.RIGHT_SHOULDER)
        return _clamp(_line_angle(rs[0] - ls[0], rs[1] - ls[1]), self.clamps.torso_rotation)

    def _torso(self, rotation: float, t: float) -> TorsoRig:
        # Breathing and sway run regardless of detection state.
        r = self.rig
        breathe = 1.0 + math.sin(2.0 * math.pi * t / r.breathing_period) * r.breathing_amplitude
        sway_x = 1.0 + math.sin(t / 4.5) * r.sway_amplitude
        sway_y = 1.0 + math.cos(t / 4.5) * r.sway_amplitude
        return TorsoRig(rotation=rotation, scale_x=breathe * sway_x, scale_y=breathe * sway_y)

    def _head(self, channels: Channels) -> HeadRig:
        r, c = self.rig, self.clamps
        depth = _clamp(_scalar(channels, Channel.HEAD_DEPTH), c.head_depth)
        roll = _clamp(_scalar(channels, Channel.HEAD_ROLL), c.head_roll)
        return HeadRig(
            x=_clamp(_scalar(channels, Channel.HEAD_X), 1.0) * r.head_travel * r.head_gain,
            y=_clamp(_scalar(channels, Channel.HEAD_Y), 1.0) * r.head_travel * r.head_gain,
            scale=1.0 + depth * r.head_gain,
            rotation=_clamp(roll * r.roll_gain, c.head_rotation),
        )

    def _eyes(self, channels: Channels, t: float) -> tuple[EyeRig, EyeRig]:
        r, c = self.rig, self.clamps
        pitch = _clamp(_scalar(channels, Channel.HEAD_PITCH), c.head_pitch)
        yaw = _clamp(_scalar(channels, Channel.HEAD_YAW), c.head_yaw)
        # Looking down narrows the eyes.
        aperture = 1.0 - (pitch / c.head_pitch) * 0.5
        aperture = max(c.eye_openness_min, min(c.eye_openness_max, aperture))
        if r.blink:
            aperture *= blink_factor(t)
        shift = yaw * r.eye_parallax
        return (
            EyeRig(center_x=-r.eye_spacing - shift, openness=aperture),
            EyeRig(center_x=r.eye_spacing - shift, openness=aperture),
        )

    def _eyebrows(self, channels: Channels, t: float) -> tuple[EyebrowRig, EyebrowRig]:
        c = self.clamps
        pitch = _clamp(_scalar(channels, Channel.HEAD_PITCH), c.head_pitch)
        yaw = _clamp(_scalar(channels, Channel.HEAD_YAW), c.head_yaw)
        roll = _clamp(_scalar(channels, Channel.HEAD_ROLL), c.head_roll)
        y = self.rig.eyebrow_y + math.sin(t / 2.5) * 5.0 - pitch * 0.4
        tilt = roll * 0.35 + yaw * 0.15
        return (
            EyebrowRig(y=y, tilt=tilt),
            EyebrowRig(y=y + math.sin(t / 3.7) * 2.0, tilt=-tilt),
        )

    def _mouth(self, channels: Channels, head: HeadRig, t: float) -> MouthRig:
        if channels.get(Channel.MOUTH_OPEN) is not None:
            openness = max(0.0, min(1.0, _scalar(channels, Channel.MOUTH_OPEN)))
        else:
            movement = abs(head.x) + abs(head.y) + abs(_scalar(channels, Channel.HEAD_YAW))
            openness = talk_openness(t, movement, self.rig.talk_threshold)
        return MouthRig(openness=openness, width=20.0 - openness * 4.0, height=4.0 + openness * 10.0)

    # ------------------------------------------------------------------

    def _recover(self, component: str, build: Callable[[], T], fallback: T) -> T:
        try:
            return build()
        except MappingError as exc:
            logger.debug("Rig component %s kept last value: %s", component, exc)
            return fallback


def _scalar(channels: Channels, channel: Channel) -> float:
    value = channels.get(channel)
    if value is None:
        msg = f"missing channel {channel}"
        raise MappingError(msg)
    if not isinstance(value, float | int) or not math.isfinite(value):
        msg = f"channel {channel} is not a finite scalar: {value!r}"
        raise MappingError(msg)
    return float(value)


def _body(channels: Channels) -> BodyPose:
    value = channels.get(Channel.BODY)
    if not isinstance(value, tuple) or len(value) != BODY_SLOT_COUNT:
        msg = f"body channel malformed: {type(value).__name__}"
        raise MappingError(msg)
    return value


def _point(body: BodyPose, slot: BodySlot) -> Vec2:
    point = body[slot]
    if point is None or not all(math.isfinite(v) for v in point):
        msg = f"body slot {slot.slot_name} missing"
        raise MappingError(msg)
    return point
