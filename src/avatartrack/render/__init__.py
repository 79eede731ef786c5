"""Renderers consuming published rig states."""

from avatartrack.render.base import JsonLinesRenderer, RecordingRenderer, Renderer
from avatartrack.render.snapshot import SnapshotRenderer, render_rig_image, save_snapshot
from avatartrack.render.websocket import WebSocketRenderer, rig_message

__all__ = [
    "JsonLinesRenderer",
    "RecordingRenderer",
    "Renderer",
    "SnapshotRenderer",
    "WebSocketRenderer",
    "render_rig_image",
    "rig_message",
    "save_snapshot",
]
