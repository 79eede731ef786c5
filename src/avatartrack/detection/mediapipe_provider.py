"""MediaPipe Pose + Face Mesh detection provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from avatartrack.models import BodySlot, FaceSlot, LandmarkFrame, LandmarkPoint

logger = logging.getLogger(__name__)

# BlazePose landmark indices for the COCO-17 slots.
BLAZEPOSE_TO_COCO: dict[int, BodySlot] = {
    0: BodySlot.NOSE,
    2: BodySlot.LEFT_EYE,
    5: BodySlot.RIGHT_EYE,
    7: BodySlot.LEFT_EAR,
    8: BodySlot.RIGHT_EAR,
    11: BodySlot.LEFT_SHOULDER,
    12: BodySlot.RIGHT_SHOULDER,
    13: BodySlot.LEFT_ELBOW,
    14: BodySlot.RIGHT_ELBOW,
    15: BodySlot.LEFT_WRIST,
    16: BodySlot.RIGHT_WRIST,
    23: BodySlot.LEFT_HIP,
    24: BodySlot.RIGHT_HIP,
    25: BodySlot.LEFT_KNEE,
    26: BodySlot.RIGHT_KNEE,
    27: BodySlot.LEFT_ANKLE,
    28: BodySlot.RIGHT_ANKLE,
}

# Face Mesh vertex indices of the named face slots.
FACE_MESH_INDICES: dict[FaceSlot, int] = {
    FaceSlot.NOSE_TIP: 4,
    FaceSlot.FOREHEAD: 151,
    FaceSlot.LEFT_EYE: 159,
    FaceSlot.RIGHT_EYE: 386,
    FaceSlot.LEFT_CHEEK: 187,
    FaceSlot.RIGHT_CHEEK: 411,
    FaceSlot.MOUTH_LEFT: 61,
    FaceSlot.MOUTH_RIGHT: 291,
    FaceSlot.MOUTH_TOP: 0,
    FaceSlot.MOUTH_BOTTOM: 17,
}

# Face Mesh reports no per-vertex confidence; use a fixed one when a face is found.
FACE_CONFIDENCE = 0.9


class MediaPipeDetectionProvider:
    """Runs MediaPipe Pose and Face Mesh on RGB frames (H x W x 3, uint8).

    Inference runs in a worker thread so the frame loop stays cooperative.
    With ``mirror`` the x axis is flipped so the avatar behaves like a mirror.
    """

    def __init__(
        self,
        *,
        mirror: bool = True,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ) -> None:
        try:
            import mediapipe as mp  # type: ignore[import-untyped]
        except ImportError as e:
            msg = "MediaPipe is not installed. Install with: pip install 'avatartrack[mediapipe]'"
            raise RuntimeError(msg) from e

        self.mirror = mirror
        self._pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=int(model_complexity),
            # Temporal smoothing is done by the stabilizer.
            smooth_landmarks=False,
            enable_segmentation=False,
            min_detection_confidence=float(min_detection_confidence),
            min_tracking_confidence=float(min_tracking_confidence),
        )
        self._face = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=False,
            min_detection_confidence=float(min_detection_confidence),
            min_tracking_confidence=float(min_tracking_confidence),
        )

    def name(self) -> str:
        return "mediapipe"

    async def detect(self, image: Any) -> LandmarkFrame | None:
        if image is None:
            return None
        return await asyncio.to_thread(self._detect_sync, image)

    def _detect_sync(self, rgb: Any) -> LandmarkFrame | None:
        h, w = int(rgb.shape[0]), int(rgb.shape[1])
        pose_res = self._pose.process(rgb)
        face_res = self._face.process(rgb)

        body: dict[BodySlot, LandmarkPoint] = {}
        if pose_res is not None and getattr(pose_res, "pose_landmarks", None):
            landmarks = pose_res.pose_landmarks.landmark
            for idx, slot in BLAZEPOSE_TO_COCO.items():
                if idx >= len(landmarks):
                    continue
                p = landmarks[idx]
                viewer_slot = self._viewer_slot(slot)
                body[viewer_slot] = LandmarkPoint(
                    x=self._x(float(p.x) * w, w),
                    y=float(p.y) * h,
                    confidence=float(getattr(p, "visibility", 0.0) or 0.0),
                    semantic_id=viewer_slot.slot_name,
                )

        face: dict[FaceSlot, LandmarkPoint] = {}
        faces = getattr(face_res, "multi_face_landmarks", None) if face_res is not None else None
        if faces:
            mesh = faces[0].landmark
            for slot, idx in FACE_MESH_INDICES.items():
                if idx >= len(mesh):
                    continue
                p = mesh[idx]
                face[slot] = LandmarkPoint(
                    x=self._x(float(p.x) * w, w),
                    y=float(p.y) * h,
                    confidence=FACE_CONFIDENCE,
                    semantic_id=slot.value,
                )

        if not body and not face:
            return None
        return LandmarkFrame(width=w, height=h, body=body, face=face)

    def _x(self, x: float, width: int) -> float:
        return width - x if self.mirror else x

    def _viewer_slot(self, slot: BodySlot) -> BodySlot:
        # Slots are reported from the viewer's side: LEFT_* is on screen left.
        # Without mirroring the subject's left side appears on screen right.
        if self.mirror:
            return slot
        name = slot.name
        if name.startswith("LEFT_"):
            return BodySlot[name.replace("LEFT_", "RIGHT_", 1)]
        if name.startswith("RIGHT_"):
            return BodySlot[name.replace("RIGHT_", "LEFT_", 1)]
        return slot

    async def close(self) -> None:
        for model in (self._pose, self._face):
            try:
                model.close()
            except Exception:
                logger.debug("MediaPipe model close failed", exc_info=True)
