"""Tests for retargeting channels onto the rig."""

import logging
import math

import pytest

from avatartrack.config import ClampSettings, RigSettings
from avatartrack.models import BodySlot, Channel, RigSource, RigState
from avatartrack.pipeline import (
    CoordinateNormalizer,
    FallbackGenerator,
    RigMapper,
    blink_factor,
    elbow_anchor,
    neutral_rig_state,
)


@pytest.fixture
def mapper() -> RigMapper:
    return RigMapper(RigSettings(blink=False))


def _channels(t: float = 0.0, **overrides):
    channels = FallbackGenerator().sample(t)
    for name, value in overrides.items():
        channels[Channel(name)] = value
    return channels


def _body_with(**points):
    body = list(FallbackGenerator().sample(0.0)[Channel.BODY])
    for name, point in points.items():
        body[BodySlot[name.upper()]] = point
    return tuple(body)


def _elbow_frame(frame_factory, angle_deg: float):
    rad = math.radians(angle_deg)
    ls = (220.0, 300.0)
    elbow = (ls[0] - math.cos(rad) * 100.0, ls[1] + math.sin(rad) * 100.0)
    return frame_factory(
        body={
            BodySlot.LEFT_SHOULDER: ls,
            BodySlot.RIGHT_SHOULDER: (420.0, 300.0),
            BodySlot.LEFT_ELBOW: elbow,
            BodySlot.LEFT_WRIST: (elbow[0] - math.cos(rad) * 100.0, elbow[1] + math.sin(rad) * 100.0),
        },
    )


def test_neutral_state_matches_model_defaults():
    neutral = neutral_rig_state()
    assert neutral == RigState()
    assert neutral.source is RigSource.NEUTRAL


def test_state_metadata(mapper):
    state = mapper.map(_channels(), 2.5, frame_id=9, source=RigSource.PARTIAL)
    assert state.frame_id == 9
    assert state.timestamp == 2.5
    assert state.source is RigSource.PARTIAL
    assert state.scale == 1.0


class TestArms:
    @pytest.mark.parametrize(("angle", "expected"), [(80.0, 80.0), (85.0, 80.0), (30.0, 30.0)])
    def test_upper_arm_angle_from_landmarks(self, mapper, frame_factory, angle, expected):
        channels = CoordinateNormalizer().normalize(_elbow_frame(frame_factory, angle), (640, 480))
        full = _channels(**{str(k): v for k, v in channels.items() if k is not Channel.BODY})
        fallback_body = full[Channel.BODY]
        full[Channel.BODY] = tuple(
            p if p is not None else fallback_body[i] for i, p in enumerate(channels[Channel.BODY])
        )
        state = mapper.map(full, 0.0)
        assert state.left_arm.upper_angle == pytest.approx(expected)

    def test_straight_arm_has_no_forearm_bend(self, mapper, frame_factory):
        channels = CoordinateNormalizer().normalize(_elbow_frame(frame_factory, 45.0), (640, 480))
        full = _channels()
        full[Channel.BODY] = tuple(
            p if p is not None else full[Channel.BODY][i] for i, p in enumerate(channels[Channel.BODY])
        )
        assert mapper.map(full, 0.0).left_arm.forearm_angle == pytest.approx(0.0, abs=1e-9)

    def test_arms_use_mirrored_frames(self, mapper):
        body = _body_with(
            left_shoulder=(-0.5, 0.0),
            left_elbow=(-0.9, 0.0),
            right_shoulder=(0.5, 0.0),
            right_elbow=(0.9, 0.0),
        )
        state = mapper.map(_channels(body=body), 0.0)
        assert state.left_arm.upper_angle == pytest.approx(0.0)
        assert state.right_arm.upper_angle == pytest.approx(0.0)
        assert state.left_arm.elbow_x < state.left_arm.shoulder_x
        assert state.right_arm.elbow_x > state.right_arm.shoulder_x

    def test_raised_arm_is_negative(self, mapper):
        body = _body_with(right_shoulder=(0.5, 0.0), right_elbow=(0.8, -0.3))
        assert mapper.map(_channels(body=body), 0.0).right_arm.upper_angle == pytest.approx(-45.0)

    @pytest.mark.parametrize("t", [0.0, 0.7, 3.3, 12.0, 61.5])
    def test_elbow_anchor_is_kinematically_exact(self, mapper, t):
        state = mapper.map(_channels(t), t)
        for arm, outward in ((state.left_arm, -1.0), (state.right_arm, 1.0)):
            rad = math.radians(arm.upper_angle)
            assert arm.elbow_x == arm.shoulder_x + outward * math.cos(rad) * 80.0
            assert arm.elbow_y == arm.shoulder_y + math.sin(rad) * 80.0
            assert (arm.elbow_x, arm.elbow_y) == elbow_anchor(
                (arm.shoulder_x, arm.shoulder_y), arm.upper_angle, 80.0, outward,
            )

    def test_missing_wrist_keeps_previous_arm(self, mapper, caplog):
        previous = mapper.map(_channels(), 0.0)
        body = _body_with(left_wrist=None, right_elbow=(0.9, 0.0), right_shoulder=(0.5, 0.0))
        with caplog.at_level(logging.DEBUG, logger="avatartrack.pipeline.rig_mapper"):
            state = mapper.map(_channels(body=body), 0.1, previous=previous)
        assert state.left_arm == previous.left_arm
        assert state.right_arm.upper_angle == pytest.approx(0.0)
        assert any("left_arm" in r.getMessage() for r in caplog.records)

    def test_missing_elbow_without_history_uses_neutral(self, mapper):
        state = mapper.map(_channels(body=_body_with(right_elbow=None)), 0.0)
        assert state.right_arm == neutral_rig_state().right_arm


class TestShouldersAndTorso:
    def test_shoulders_follow_body_position(self, mapper):
        state = mapper.map(_channels(body_x=0.5, body_y=-0.25), 0.0)
        assert state.left_arm.shoulder_x == pytest.approx(-85.0 + 20.0)
        assert state.right_arm.shoulder_x == pytest.approx(85.0 + 20.0)
        assert state.left_arm.shoulder_y == pytest.approx(35.0)

    def test_shoulder_travel_is_clamped(self, mapper):
        state = mapper.map(_channels(body_x=1.0, body_y=1.0), 0.0)
        assert state.right_arm.shoulder_x == pytest.approx(115.0)
        assert state.right_arm.shoulder_y == pytest.approx(80.0)

    def test_torso_follows_shoulder_slope(self, mapper):
        body = _body_with(left_shoulder=(-0.5, 0.1), right_shoulder=(0.5, -0.1))
        state = mapper.map(_channels(body=body), 0.0)
        assert state.torso.rotation == pytest.approx(math.degrees(math.atan2(-0.2, 1.0)))

    def test_breathing_runs_without_body(self, mapper):
        channels = _channels()
        del channels[Channel.BODY]
        previous = mapper.map(_channels(), 0.0)
        t = 0.75  # quarter breathing period
        state = mapper.map(channels, t, previous=previous)
        assert state.torso.rotation == previous.torso.rotation
        breathe = 1.0 + 0.025
        assert state.torso.scale_x == pytest.approx(breathe * (1.0 + math.sin(t / 4.5) * 0.01))
        assert state.left_arm == previous.left_arm


class TestFace:
    def test_head_translation_scale_and_rotation(self, mapper):
        state = mapper.map(_channels(head_x=0.5, head_y=-0.25, head_depth=0.2, head_roll=10.0), 0.0)
        assert state.head.x == pytest.approx(24.0)
        assert state.head.y == pytest.approx(-12.0)
        assert state.head.scale == pytest.approx(1.24)
        assert state.head.rotation == pytest.approx(8.0)

    def test_head_rotation_is_clamped(self):
        mapper = RigMapper(RigSettings(roll_gain=3.0))
        assert mapper.map(_channels(head_roll=15.0), 0.0).head.rotation == pytest.approx(20.0)

    @pytest.mark.parametrize(("pitch", "openness"), [(0.0, 1.0), (30.0, 0.5), (-30.0, 1.2), (-10.0, 1.0 + 1 / 6)])
    def test_eye_openness_follows_pitch(self, mapper, pitch, openness):
        state = mapper.map(_channels(head_pitch=pitch), 0.0)
        assert state.left_eye.openness == pytest.approx(openness)
        assert state.right_eye.openness == pytest.approx(openness)

    def test_eye_parallax_follows_yaw(self, mapper):
        state = mapper.map(_channels(head_yaw=20.0), 0.0)
        assert state.left_eye.center_x == pytest.approx(-30.0)
        assert state.right_eye.center_x == pytest.approx(20.0)

    def test_eyebrows(self, mapper):
        t = 0.0
        state = mapper.map(_channels(head_pitch=10.0, head_roll=10.0, head_yaw=0.0), t)
        assert state.left_eyebrow.y == pytest.approx(-74.0)
        assert state.right_eyebrow.y == pytest.approx(-74.0)
        assert state.left_eyebrow.tilt == pytest.approx(3.5)
        assert state.right_eyebrow.tilt == pytest.approx(-3.5)

    def test_missing_pitch_keeps_previous_eyes(self, mapper):
        previous = mapper.map(_channels(head_pitch=20.0), 0.0)
        channels = _channels(head_pitch=0.0)
        del channels[Channel.HEAD_PITCH]
        state = mapper.map(channels, 0.1, previous=previous)
        assert state.left_eye == previous.left_eye
        assert state.left_eyebrow == previous.left_eyebrow


class TestMouth:
    def test_detected_mouth_wins(self, mapper):
        state = mapper.map(_channels(mouth_open=0.5), 0.0)
        assert state.mouth.openness == pytest.approx(0.5)
        assert state.mouth.width == pytest.approx(18.0)
        assert state.mouth.height == pytest.approx(9.0)

    @staticmethod
    def _without_mouth(t: float, **overrides):
        channels = _channels(t, **overrides)
        del channels[Channel.MOUTH_OPEN]
        return channels

    def test_talks_in_first_half_of_cycle(self, mapper):
        t = 1.0
        state = mapper.map(self._without_mouth(t, head_x=0.0, head_y=0.0, head_yaw=0.0), t)
        assert state.mouth.openness == pytest.approx(math.sin(t / 0.3) * 0.5 + 0.5)

    def test_idle_breathing_mouth(self, mapper):
        t = 3.0
        state = mapper.map(self._without_mouth(t, head_x=0.0, head_y=0.0, head_yaw=0.0), t)
        openness = 0.15 * (math.sin(1.0) * 0.3 + 0.7)
        assert state.mouth.openness == pytest.approx(openness)
        assert state.mouth.height == pytest.approx(4.0 + openness * 10.0)

    def test_head_movement_triggers_talking(self, mapper):
        t = 3.0
        state = mapper.map(self._without_mouth(t, head_x=1.0, head_y=0.0, head_yaw=0.0), t)
        assert state.mouth.openness == pytest.approx(math.sin(t / 0.3) * 0.5 + 0.5)

    def test_shape_follows_openness(self, mapper):
        closed = mapper.map(_channels(mouth_open=0.0), 0.0).mouth
        open_ = mapper.map(_channels(mouth_open=1.0), 0.0).mouth
        assert (closed.width, closed.height) == (20.0, 4.0)
        assert (open_.width, open_.height) == (16.0, 14.0)


class TestBlink:
    def test_factor_range(self):
        values = [blink_factor(i * 0.001) for i in range(20000)]
        assert min(values) >= 0.1 - 1e-9
        assert max(values) == 1.0
        assert min(values) < 0.2

    def test_blinks_are_brief(self):
        values = [blink_factor(i * 0.001) for i in range(20000)]
        closed = sum(1 for v in values if v < 1.0) / len(values)
        assert 0.01 < closed < 0.06

    def test_blink_modulates_eyes(self):
        mapper = RigMapper(RigSettings(blink=True))
        t = next(i * 0.001 for i in range(20000) if blink_factor(i * 0.001) < 0.5)
        state = mapper.map(_channels(head_pitch=0.0), t)
        assert state.left_eye.openness == pytest.approx(blink_factor(t))


class TestClampInvariant:
    @pytest.mark.parametrize("extreme", [-1e3, -5.0, 5.0, 1e3])
    def test_rig_fields_stay_in_range(self, extreme):
        clamps = ClampSettings()
        mapper = RigMapper(RigSettings(), clamps)
        wild = _body_with(
            left_elbow=(extreme, 0.3), left_wrist=(0.0, extreme),
            right_elbow=(0.2, -extreme), right_wrist=(-extreme, extreme),
            left_shoulder=(-0.5, extreme), right_shoulder=(0.5, -extreme),
        )
        for i in range(200):
            t = i * 0.37
            channels = _channels(
                t,
                head_x=extreme, head_y=-extreme, head_depth=extreme,
                head_pitch=extreme, head_yaw=-extreme, head_roll=extreme,
                mouth_open=extreme, body_x=extreme, body_y=extreme, body=wild,
            )
            s = mapper.map(channels, t)
            assert abs(s.head.rotation) <= clamps.head_rotation
            assert 1 - clamps.head_depth * 1.2 <= s.head.scale <= 1 + clamps.head_depth * 1.2
            assert abs(s.torso.rotation) <= clamps.torso_rotation
            assert 0.97 * 0.99 <= s.torso.scale_x <= 1.03 * 1.01
            assert 0.97 * 0.99 <= s.torso.scale_y <= 1.03 * 1.01
            for arm in (s.left_arm, s.right_arm):
                assert abs(arm.upper_angle) <= clamps.upper_arm
                assert abs(arm.forearm_angle) <= clamps.forearm
            for eye in (s.left_eye, s.right_eye):
                assert 0.0 <= eye.openness <= clamps.eye_openness_max
            assert 0.0 <= s.mouth.openness <= 1.0
