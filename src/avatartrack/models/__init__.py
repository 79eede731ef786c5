"""avatartrack data models - landmarks, channels and rig state, no I/O."""

from avatartrack.models.channels import (
    BODY_SLOT_COUNT,
    REQUIRED_CHANNELS,
    SCALAR_CHANNELS,
    BodyPose,
    Channels,
    ChannelValue,
    Vec2,
    empty_body_pose,
)
from avatartrack.models.enums import (
    BodySlot,
    Channel,
    DetectionStatus,
    FaceSlot,
    RigSource,
    SessionState,
)
from avatartrack.models.landmarks import LandmarkFrame, LandmarkPoint
from avatartrack.models.rig import (
    ArmRig,
    EyebrowRig,
    EyeRig,
    HeadRig,
    MouthRig,
    RigState,
    TorsoRig,
)

__all__ = [
    "BODY_SLOT_COUNT",
    "REQUIRED_CHANNELS",
    "SCALAR_CHANNELS",
    "ArmRig",
    "BodyPose",
    "BodySlot",
    "Channel",
    "ChannelValue",
    "Channels",
    "DetectionStatus",
    "EyeRig",
    "EyebrowRig",
    "FaceSlot",
    "HeadRig",
    "LandmarkFrame",
    "LandmarkPoint",
    "MouthRig",
    "RigSource",
    "RigState",
    "SessionState",
    "TorsoRig",
    "Vec2",
    "empty_body_pose",
]
