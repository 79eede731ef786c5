"""Published rig parameter models.

Field defaults describe the neutral pose of the default rig geometry, so
``RigState()`` is always a complete, renderable state.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field

from avatartrack.models.enums import RigSource


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)


class HeadRig(_Frozen):
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0


class EyeRig(_Frozen):
    center_x: float
    openness: float = Field(default=1.0, ge=0.0)


class EyebrowRig(_Frozen):
    y: float = -70.0
    tilt: float = 0.0


class MouthRig(_Frozen):
    openness: float = Field(default=0.0, ge=0.0, le=1.0)
    width: float = 20.0
    height: float = 8.0


class TorsoRig(_Frozen):
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0


class ArmRig(_Frozen):
    """Two-segment arm.  Angles are degrees in the arm's outward frame:
    0 points horizontally away from the body, positive angles point down.
    """

    shoulder_x: float
    shoulder_y: float = 50.0
    upper_angle: float = 75.0
    forearm_angle: float = 0.0
    elbow_x: float
    elbow_y: float


class RigState(_Frozen):
    """One complete frame of rig parameters for the renderer."""

    frame_id: int = 0
    timestamp: float = 0.0
    source: RigSource = RigSource.NEUTRAL
    scale: float = 1.0
    head: HeadRig = Field(default_factory=HeadRig)
    left_eye: EyeRig = Field(default_factory=lambda: EyeRig(center_x=-25.0))
    right_eye: EyeRig = Field(default_factory=lambda: EyeRig(center_x=25.0))
    left_eyebrow: EyebrowRig = Field(default_factory=EyebrowRig)
    right_eyebrow: EyebrowRig = Field(default_factory=EyebrowRig)
    mouth: MouthRig = Field(default_factory=MouthRig)
    torso: TorsoRig = Field(default_factory=TorsoRig)
    left_arm: ArmRig = Field(default_factory=lambda: _rest_arm(-1.0))
    right_arm: ArmRig = Field(default_factory=lambda: _rest_arm(1.0))


def _rest_arm(outward: float) -> ArmRig:
    """Arm hanging at the default rest angle on the default rig geometry."""
    shoulder_x, shoulder_y, length, angle = 85.0 * outward, 50.0, 80.0, 75.0
    rad = math.radians(angle)
    return ArmRig(
        shoulder_x=shoulder_x,
        shoulder_y=shoulder_y,
        upper_angle=angle,
        elbow_x=shoulder_x + outward * math.cos(rad) * length,
        elbow_y=shoulder_y + math.sin(rad) * length,
    )
