"""Tests for the reference renderers."""

import asyncio
import io
import json
import urllib.error
import urllib.request

import pytest
import websockets
from PIL import Image

from avatartrack.models import HeadRig, RigSource, RigState
from avatartrack.pipeline import FallbackGenerator, RigMapper
from avatartrack.render import (
    JsonLinesRenderer,
    RecordingRenderer,
    Renderer,
    SnapshotRenderer,
    WebSocketRenderer,
    render_rig_image,
    rig_message,
    save_snapshot,
)
from avatartrack.validation import validate_rig_json


@pytest.fixture
def live_state() -> RigState:
    return RigMapper().map(FallbackGenerator().sample(2.0), 2.0, frame_id=4, source=RigSource.FALLBACK)


def test_renderers_satisfy_protocol(tmp_path):
    assert isinstance(RecordingRenderer(), Renderer)
    assert isinstance(JsonLinesRenderer(io.StringIO()), Renderer)
    assert isinstance(SnapshotRenderer(tmp_path), Renderer)
    assert isinstance(WebSocketRenderer(), Renderer)


class TestRecordingRenderer:
    def test_keeps_states_in_order(self):
        renderer = RecordingRenderer()
        a, b = RigState(frame_id=1), RigState(frame_id=2)
        renderer.publish(a)
        renderer.publish(b)
        assert renderer.states == [a, b]
        assert renderer.last is b

    def test_limit_drops_oldest(self):
        renderer = RecordingRenderer(limit=2)
        for i in range(5):
            renderer.publish(RigState(frame_id=i))
        assert [s.frame_id for s in renderer.states] == [3, 4]

    def test_clear(self):
        renderer = RecordingRenderer()
        renderer.publish(RigState())
        renderer.clear()
        assert renderer.last is None


class TestJsonLinesRenderer:
    def test_writes_one_valid_document_per_state(self, live_state):
        stream = io.StringIO()
        renderer = JsonLinesRenderer(stream)
        renderer.publish(live_state)
        renderer.publish(RigState())
        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert renderer.count == 2
        first = json.loads(lines[0])
        assert first["frame_id"] == 4
        assert first["source"] == "fallback"
        validate_rig_json(first)
        assert RigState.model_validate_json(lines[0]) == live_state


class TestSnapshot:
    def test_render_image_size_and_content(self, live_state):
        img = render_rig_image(live_state, width=320, height=240)
        assert img.size == (320, 240)
        assert img.mode == "RGB"
        # something was drawn over the background
        assert len(img.getcolors(maxcolors=100000)) > 1

    def test_head_position_moves_drawing(self):
        left = render_rig_image(RigState(head=HeadRig(x=-60.0)))
        right = render_rig_image(RigState(head=HeadRig(x=60.0)))
        assert left.tobytes() != right.tobytes()

    def test_forearm_length_changes_drawing(self, live_state):
        short = render_rig_image(live_state, forearm_length=10.0)
        long = render_rig_image(live_state, forearm_length=120.0)
        assert short.tobytes() != long.tobytes()

    def test_snapshot_renderer_passes_forearm_length(self, tmp_path, live_state):
        renderer = SnapshotRenderer(tmp_path, forearm_length=10.0)
        renderer.publish(live_state)
        with Image.open(renderer.written[0]) as img:
            assert img.tobytes() == render_rig_image(live_state, forearm_length=10.0).tobytes()

    def test_save_snapshot_writes_png(self, tmp_path, live_state):
        path = save_snapshot(live_state, tmp_path / "nested" / "rig.png", width=200, height=150)
        assert path.exists()
        with Image.open(path) as img:
            assert img.format == "PNG"
            assert img.size == (200, 150)

    def test_snapshot_renderer_every_nth(self, tmp_path):
        renderer = SnapshotRenderer(tmp_path, every=2, width=64, height=48)
        for i in range(5):
            renderer.publish(RigState(frame_id=i))
        assert [p.name for p in renderer.written] == [
            "rig_000000.png",
            "rig_000002.png",
            "rig_000004.png",
        ]

    def test_snapshot_renderer_rejects_bad_interval(self, tmp_path):
        with pytest.raises(ValueError, match="every"):
            SnapshotRenderer(tmp_path, every=0)


class TestWebSocketRenderer:
    def test_message_format(self, live_state):
        msg = json.loads(rig_message(live_state))
        assert msg["type"] == "rig"
        assert msg["state"]["frame_id"] == 4
        validate_rig_json(msg["state"])

    def test_publish_without_clients_is_harmless(self, live_state):
        renderer = WebSocketRenderer()
        renderer.publish(live_state)
        assert renderer.client_count == 0

    @pytest.mark.asyncio
    async def test_broadcast_delivers_to_client(self, live_state):
        async with WebSocketRenderer(host="127.0.0.1", port=0) as renderer:
            async with websockets.connect(f"ws://127.0.0.1:{renderer.bound_port}") as client:
                # Small delay to let handler register the client
                await asyncio.sleep(0.05)
                assert renderer.client_count == 1
                renderer.publish(live_state)
                raw = await asyncio.wait_for(client.recv(), timeout=2.0)
                msg = json.loads(raw)
                assert msg["type"] == "rig"
                assert msg["state"]["source"] == "fallback"

    @pytest.mark.asyncio
    async def test_new_client_receives_latest_state(self, live_state):
        async with WebSocketRenderer(host="127.0.0.1", port=0) as renderer:
            renderer.publish(live_state)
            async with websockets.connect(f"ws://127.0.0.1:{renderer.bound_port}") as client:
                raw = await asyncio.wait_for(client.recv(), timeout=2.0)
                assert json.loads(raw)["state"]["frame_id"] == 4

    @pytest.mark.asyncio
    async def test_preview_page(self):
        async with WebSocketRenderer(host="127.0.0.1", port=0, http_port=0) as renderer:
            port = renderer._http_server.server_address[1]

            def fetch(path: str):
                return urllib.request.urlopen(f"http://127.0.0.1:{port}{path}")

            with await asyncio.to_thread(fetch, "/") as resp:
                body = resp.read().decode()
            assert resp.status == 200
            assert "<canvas" in body
            assert str(renderer.bound_port) in body

            with pytest.raises(urllib.error.HTTPError) as excinfo:
                await asyncio.to_thread(fetch, "/missing")
            assert excinfo.value.code == 404
