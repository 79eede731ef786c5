"""Coordinate normalization: detection-space landmarks to channel space."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from avatartrack.config import NormalizerSettings
from avatartrack.models import (
    BODY_SLOT_COUNT,
    BodySlot,
    Channel,
    Channels,
    FaceSlot,
    Vec2,
)
from avatartrack.pipeline.channels import ChannelSpec, build_channel_specs

if TYPE_CHECKING:
    from avatartrack.models import LandmarkFrame

# Shoulder or eye spacing below this many pixels is treated as degenerate.
MIN_SPAN_PX = 1.0

# Degrees of pitch per unit of relative mouth-height change.
MOUTH_PITCH_GAIN = 30.0


class CoordinateNormalizer:
    """Converts one :class:`LandmarkFrame` into a partial channel mapping.

    Only channels derivable from confident points are produced; anything else
    is left out so that fallback or carry-forward can fill it in.
    """

    def __init__(
        self,
        settings: NormalizerSettings | None = None,
        specs: dict[Channel, ChannelSpec] | None = None,
    ) -> None:
        self.settings = settings or NormalizerSettings()
        self.specs = specs or build_channel_specs()

    def normalize(self, frame: LandmarkFrame | None, surface: tuple[int, int]) -> Channels:
        if frame is None:
            return {}
        width, height = surface
        sx = width / frame.width
        sy = height / frame.height
        threshold = self.settings.confidence_threshold

        body: dict[BodySlot, Vec2] = {
            slot: (p.x * sx, p.y * sy)
            for slot, p in frame.body.items()
            if p.is_confident(threshold)
        }
        face: dict[FaceSlot, Vec2] = {
            slot: (p.x * sx, p.y * sy)
            for slot, p in frame.face.items()
            if p.is_confident(threshold)
        }

        channels: Channels = {}
        channels.update(self._body_channels(body, width, height))
        channels.update(self._face_channels(face, width, height))
        return channels

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def _body_channels(self, body: dict[BodySlot, Vec2], width: int, height: int) -> Channels:
        ls = body.get(BodySlot.LEFT_SHOULDER)
        rs = body.get(BodySlot.RIGHT_SHOULDER)
        if ls is None or rs is None:
            return {}
        span = math.hypot(rs[0] - ls[0], rs[1] - ls[1])
        if span < MIN_SPAN_PX:
            return {}

        mx = (ls[0] + rs[0]) / 2.0
        my = (ls[1] + rs[1]) / 2.0
        spec = self.specs[Channel.BODY]
        pose: list[Vec2 | None] = [None] * BODY_SLOT_COUNT
        for slot, (x, y) in body.items():
            pose[slot] = (spec.clamp((x - mx) / span), spec.clamp((y - my) / span))

        return {
            Channel.BODY: tuple(pose),
            Channel.BODY_X: self._clamp(Channel.BODY_X, (mx - width / 2.0) / (width / 2.0)),
            Channel.BODY_Y: self._clamp(Channel.BODY_Y, (my - height / 2.0) / (height / 2.0)),
        }

    # ------------------------------------------------------------------
    # Face
    # ------------------------------------------------------------------

    def _face_channels(self, face: dict[FaceSlot, Vec2], width: int, height: int) -> Channels:
        s = self.settings
        out: Channels = {}
        nose = face.get(FaceSlot.NOSE_TIP)
        left_eye = face.get(FaceSlot.LEFT_EYE)
        right_eye = face.get(FaceSlot.RIGHT_EYE)

        eye_mid: Vec2 | None = None
        if left_eye is not None and right_eye is not None:
            eye_mid = ((left_eye[0] + right_eye[0]) / 2.0, (left_eye[1] + right_eye[1]) / 2.0)

        center = nose or eye_mid
        if center is None:
            return out
        out[Channel.HEAD_X] = self._clamp(Channel.HEAD_X, (center[0] - width / 2.0) / (width / 2.0))
        out[Channel.HEAD_Y] = self._clamp(Channel.HEAD_Y, (center[1] - height / 2.0) / (height / 2.0))

        if left_eye is not None and right_eye is not None and eye_mid is not None:
            dx = right_eye[0] - left_eye[0]
            dy = right_eye[1] - left_eye[1]
            spacing = math.hypot(dx, dy)
            if spacing >= MIN_SPAN_PX:
                out[Channel.HEAD_DEPTH] = self._clamp(
                    Channel.HEAD_DEPTH, (spacing / width - s.depth_reference) * s.depth_gain,
                )
                out[Channel.HEAD_ROLL] = self._clamp(Channel.HEAD_ROLL, _line_angle(dx, dy))

                # Foreshortening of the eye line measures how far the head is
                # turned; the nose offset from the eye midpoint gives the side.
                ratio = abs(dx) / (width * s.expected_eye_spacing)
                side_ref = nose[0] - eye_mid[0] if nose is not None else width / 2.0 - center[0]
                yaw = max(0.0, 1.0 - ratio) * s.yaw_gain * _sign(side_ref)
                out[Channel.HEAD_YAW] = self._clamp(Channel.HEAD_YAW, yaw)

                if nose is not None:
                    drop = (nose[1] - eye_mid[1]) / spacing
                    out[Channel.HEAD_PITCH] = self._clamp(
                        Channel.HEAD_PITCH, (drop - s.pitch_reference) * s.pitch_gain,
                    )

        mouth_top = face.get(FaceSlot.MOUTH_TOP)
        mouth_bottom = face.get(FaceSlot.MOUTH_BOTTOM)
        if mouth_top is not None and mouth_bottom is not None:
            mouth_h = abs(mouth_bottom[1] - mouth_top[1])
            if Channel.HEAD_PITCH not in out:
                relative = mouth_h / (height * s.mouth_reference_height)
                out[Channel.HEAD_PITCH] = self._clamp(
                    Channel.HEAD_PITCH, (1.0 - relative) * MOUTH_PITCH_GAIN,
                )
            mouth_left = face.get(FaceSlot.MOUTH_LEFT)
            mouth_right = face.get(FaceSlot.MOUTH_RIGHT)
            if mouth_left is not None and mouth_right is not None:
                mouth_w = abs(mouth_right[0] - mouth_left[0])
                if mouth_w >= MIN_SPAN_PX:
                    out[Channel.MOUTH_OPEN] = self._clamp(
                        Channel.MOUTH_OPEN, mouth_h / mouth_w * s.mouth_gain,
                    )
        return out

    def _clamp(self, channel: Channel, value: float) -> float:
        return self.specs[channel].clamp(value)


def _line_angle(dx: float, dy: float) -> float:
    """Slope of a line in degrees, independent of which endpoint comes first."""
    if dx < 0:
        dx, dy = -dx, -dy
    return math.degrees(math.atan2(dy, dx))


def _sign(value: float) -> float:
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0
