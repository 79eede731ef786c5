"""Enumerations used throughout avatartrack."""

from enum import IntEnum, StrEnum


class BodySlot(IntEnum):
    """COCO-17 body keypoint slots, in their canonical index order."""

    NOSE = 0
    LEFT_EYE = 1
    RIGHT_EYE = 2
    LEFT_EAR = 3
    RIGHT_EAR = 4
    LEFT_SHOULDER = 5
    RIGHT_SHOULDER = 6
    LEFT_ELBOW = 7
    RIGHT_ELBOW = 8
    LEFT_WRIST = 9
    RIGHT_WRIST = 10
    LEFT_HIP = 11
    RIGHT_HIP = 12
    LEFT_KNEE = 13
    RIGHT_KNEE = 14
    LEFT_ANKLE = 15
    RIGHT_ANKLE = 16

    @property
    def slot_name(self) -> str:
        return self.name.lower()


class FaceSlot(StrEnum):
    NOSE_TIP = "nose_tip"
    FOREHEAD = "forehead"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_CHEEK = "left_cheek"
    RIGHT_CHEEK = "right_cheek"
    MOUTH_LEFT = "mouth_left"
    MOUTH_RIGHT = "mouth_right"
    MOUTH_TOP = "mouth_top"
    MOUTH_BOTTOM = "mouth_bottom"


class Channel(StrEnum):
    """Names of the normalized channels flowing from normalizer to rig mapper."""

    HEAD_X = "head_x"
    HEAD_Y = "head_y"
    HEAD_DEPTH = "head_depth"
    HEAD_PITCH = "head_pitch"
    HEAD_YAW = "head_yaw"
    HEAD_ROLL = "head_roll"
    MOUTH_OPEN = "mouth_open"
    BODY_X = "body_x"
    BODY_Y = "body_y"
    BODY = "body"


class DetectionStatus(StrEnum):
    DETECTED = "detected"
    UNAVAILABLE = "unavailable"
    ERRORED = "errored"


class RigSource(StrEnum):
    """Where the motion of a published rig frame came from."""

    DETECTED = "detected"
    PARTIAL = "partial"
    FALLBACK = "fallback"
    NEUTRAL = "neutral"


class SessionState(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"
