"""Pillow rendering of rig states to still images."""

from __future__ import annotations

import logging
import math
from pathlib import Path

from PIL import Image, ImageDraw

from avatartrack.models import ArmRig, RigState

logger = logging.getLogger(__name__)

LINE_COLOUR = (205, 214, 244)
JOINT_COLOUR = (243, 139, 168)
BG_COLOUR = (30, 30, 46)

HEAD_OFFSET_Y = -60.0
HEAD_RADIUS = 70.0
TORSO_HALF_WIDTH = 85.0
TORSO_TOP = 40.0
TORSO_BOTTOM = 200.0


def render_rig_image(
    state: RigState,
    *,
    width: int = 640,
    height: int = 480,
    forearm_length: float = 80.0,
    bg_colour: tuple[int, int, int] = BG_COLOUR,
    line_width: int = 6,
) -> Image.Image:
    """Draw *state* as a simple puppet: torso box, two-segment arms, face.

    Rig coordinates are centred on the image and multiplied by the state's
    global scale.
    """
    img = Image.new("RGB", (width, height), bg_colour)
    draw = ImageDraw.Draw(img)
    cx, cy, k = width / 2.0, height / 2.0, state.scale

    def px(x: float, y: float) -> tuple[float, float]:
        return (cx + x * k, cy + y * k)

    # Torso, rotated and scaled around the rig origin.
    t = state.torso
    rad = math.radians(t.rotation)
    corners = [
        (-TORSO_HALF_WIDTH, TORSO_TOP),
        (TORSO_HALF_WIDTH, TORSO_TOP),
        (TORSO_HALF_WIDTH, TORSO_BOTTOM),
        (-TORSO_HALF_WIDTH, TORSO_BOTTOM),
    ]
    polygon = []
    for x, y in corners:
        x, y = x * t.scale_x, y * t.scale_y
        polygon.append(px(x * math.cos(rad) - y * math.sin(rad), x * math.sin(rad) + y * math.cos(rad)))
    draw.polygon(polygon, outline=LINE_COLOUR, width=line_width)

    for arm, outward in ((state.left_arm, -1.0), (state.right_arm, 1.0)):
        _draw_arm(draw, arm, outward, forearm_length, px, line_width)

    # Head and face features.
    h = state.head
    hx, hy = h.x, h.y + HEAD_OFFSET_Y
    r = HEAD_RADIUS * h.scale
    x0, y0 = px(hx - r, hy - r)
    x1, y1 = px(hx + r, hy + r)
    draw.ellipse([x0, y0, x1, y1], outline=LINE_COLOUR, width=max(1, line_width // 2))

    face_k = h.scale
    for eye in (state.left_eye, state.right_eye):
        ex, ey = hx + eye.center_x * face_k, hy - 10.0 * face_k
        rx, ry = 8.0 * face_k, max(0.5, 10.0 * eye.openness * face_k)
        x0, y0 = px(ex - rx, ey - ry)
        x1, y1 = px(ex + rx, ey + ry)
        draw.ellipse([x0, y0, x1, y1], fill=LINE_COLOUR)

    for brow, side in ((state.left_eyebrow, -1.0), (state.right_eyebrow, 1.0)):
        bx, by = hx + side * 25.0 * face_k, hy + (brow.y + 35.0) * face_k
        dx = math.cos(math.radians(brow.tilt)) * 12.0 * face_k
        dy = math.sin(math.radians(brow.tilt)) * 12.0 * face_k
        draw.line([px(bx - dx, by - dy), px(bx + dx, by + dy)], fill=LINE_COLOUR, width=3)

    m = state.mouth
    mx, my = hx, hy + 35.0 * face_k
    rx, ry = m.width / 2.0 * face_k, max(0.5, m.height / 2.0 * face_k)
    x0, y0 = px(mx - rx, my - ry)
    x1, y1 = px(mx + rx, my + ry)
    draw.ellipse([x0, y0, x1, y1], outline=LINE_COLOUR, width=2)
    return img


def _draw_arm(draw, arm: ArmRig, outward: float, forearm_length: float, px, line_width: int) -> None:
    fore = math.radians(arm.upper_angle + arm.forearm_angle)
    wrist = (
        arm.elbow_x + outward * math.cos(fore) * forearm_length,
        arm.elbow_y + math.sin(fore) * forearm_length,
    )
    points = [px(arm.shoulder_x, arm.shoulder_y), px(arm.elbow_x, arm.elbow_y), px(*wrist)]
    draw.line(points, fill=LINE_COLOUR, width=line_width)
    for x, y in points:
        draw.ellipse([x - 4, y - 4, x + 4, y + 4], fill=JOINT_COLOUR)


def save_snapshot(
    state: RigState,
    output_path: Path,
    *,
    width: int = 640,
    height: int = 480,
    forearm_length: float = 80.0,
) -> Path:
    """Render *state* and write it as PNG to *output_path*."""
    img = render_rig_image(state, width=width, height=height, forearm_length=forearm_length)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path, "PNG")
    return output_path


class SnapshotRenderer:
    """Writes every ``every``-th published state as a numbered PNG."""

    def __init__(
        self,
        output_dir: Path,
        *,
        every: int = 1,
        width: int = 640,
        height: int = 480,
        forearm_length: float = 80.0,
    ) -> None:
        if every < 1:
            msg = f"every must be >= 1, got {every}"
            raise ValueError(msg)
        self.output_dir = output_dir
        self.every = every
        self.width = width
        self.height = height
        self.forearm_length = forearm_length
        self.written: list[Path] = []
        self._seen = 0

    def publish(self, state: RigState) -> None:
        self._seen += 1
        if (self._seen - 1) % self.every:
            return
        path = self.output_dir / f"rig_{state.frame_id:06d}.png"
        save_snapshot(
            state, path, width=self.width, height=self.height, forearm_length=self.forearm_length,
        )
        logger.debug("Wrote snapshot %s", path)
        self.written.append(path)
