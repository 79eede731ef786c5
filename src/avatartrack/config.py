"""Application configuration with pydantic-settings + TOML."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict, TomlConfigSettingsSource

from avatartrack.errors import ConfigLoadError


def _default_config_dir() -> Path:
    return Path.home() / ".avatartrack"


class SmoothingSettings(BaseSettings):
    """Temporal stabilizer tuning."""

    level: float = Field(default=0.7, ge=0.0, le=0.95)
    max_alpha: float = Field(default=0.95, ge=0.0, lt=1.0)
    large_drop: float = Field(default=0.3, ge=0.0, le=1.0)
    large_floor: float = Field(default=0.1, ge=0.0, le=1.0)
    medium_drop: float = Field(default=0.15, ge=0.0, le=1.0)
    medium_floor: float = Field(default=0.2, ge=0.0, le=1.0)
    # Share of the synthetic value mixed in per frame while detection is lost.
    fallback_blend: float = Field(default=0.3, ge=0.0, le=1.0)
    rate_limit: bool = True


class NormalizerSettings(BaseSettings):
    """Landmark gating and face-geometry calibration."""

    confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    expected_eye_spacing: float = Field(default=0.12, gt=0.0)
    depth_reference: float = 0.09
    depth_gain: float = 3.0
    yaw_gain: float = 45.0
    pitch_reference: float = 0.55
    pitch_gain: float = 60.0
    mouth_gain: float = 3.0
    mouth_reference_height: float = Field(default=0.03, gt=0.0)


class ClampSettings(BaseSettings):
    """Symmetric clamp limits (degrees unless noted)."""

    head_pitch: float = Field(default=30.0, gt=0.0)
    head_yaw: float = Field(default=40.0, gt=0.0)
    head_roll: float = Field(default=20.0, gt=0.0)
    head_depth: float = Field(default=0.3, gt=0.0)
    head_rotation: float = Field(default=20.0, gt=0.0)
    upper_arm: float = Field(default=80.0, gt=0.0, le=180.0)
    forearm: float = Field(default=90.0, gt=0.0, le=180.0)
    torso_rotation: float = Field(default=20.0, gt=0.0)
    eye_openness_min: float = Field(default=0.4, ge=0.0)
    eye_openness_max: float = Field(default=1.2, gt=0.0)
    # Rig units.
    shoulder_travel_x: float = Field(default=30.0, ge=0.0)
    shoulder_y_min: float = 30.0
    shoulder_y_max: float = 80.0


class RigSettings(BaseSettings):
    """Fixed rig geometry and retargeting gains."""

    scale: float = Field(default=1.0, ge=0.5, le=1.5)
    head_travel: float = 40.0
    head_gain: float = 1.2
    roll_gain: float = 0.8
    upper_arm_length: float = Field(default=80.0, gt=0.0)
    forearm_length: float = Field(default=80.0, gt=0.0)
    shoulder_half_width: float = 85.0
    shoulder_y: float = 50.0
    shoulder_gain_x: float = 40.0
    shoulder_gain_y: float = 60.0
    rest_upper_angle: float = 75.0
    eye_spacing: float = 25.0
    eye_parallax: float = 0.25
    eyebrow_y: float = -70.0
    # Head movement (rig units + yaw degrees) above which the mouth talks.
    talk_threshold: float = Field(default=30.0, ge=0.0)
    breathing_amplitude: float = Field(default=0.025, ge=0.0, le=0.05)
    breathing_period: float = Field(default=3.0, gt=0.0)
    sway_amplitude: float = Field(default=0.01, ge=0.0, le=0.02)
    blink: bool = True


class DetectionSettings(BaseSettings):
    """Detection provider selection."""

    provider: Literal["synthetic", "mediapipe"] = "synthetic"
    mirror: bool = True
    model_complexity: int = Field(default=1, ge=0, le=2)
    min_detection_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_tracking_confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class SessionSettings(BaseSettings):
    """Frame loop cadence and render surface."""

    target_fps: float = Field(default=60.0, gt=0.0, le=240.0)
    surface_width: int = Field(default=640, gt=0)
    surface_height: int = Field(default=480, gt=0)

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.target_fps

    @property
    def surface(self) -> tuple[int, int]:
        return (self.surface_width, self.surface_height)


class AppConfig(BaseSettings):
    """Root application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AVATARTRACK_",
        env_nested_delimiter="__",
    )

    config_dir: Path = Field(default_factory=_default_config_dir)
    smoothing: SmoothingSettings = Field(default_factory=SmoothingSettings)
    normalizer: NormalizerSettings = Field(default_factory=NormalizerSettings)
    clamps: ClampSettings = Field(default_factory=ClampSettings)
    rig: RigSettings = Field(default_factory=RigSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)

    @classmethod
    def settings_customise_sources(cls, settings_cls, **kwargs):  # type: ignore[override]
        toml_path = _default_config_dir() / "config.toml"
        sources = (
            kwargs.get("init_settings"),
            kwargs.get("env_settings"),
        )
        if toml_path.exists():
            sources = (*sources, TomlConfigSettingsSource(settings_cls, toml_file=toml_path))
        return (*sources, kwargs.get("dotenv_settings"), kwargs.get("file_secret_settings"))


def load_config(path: Path | None = None) -> AppConfig:
    """Load application config.

    Without *path* the usual sources apply (environment, then
    ``~/.avatartrack/config.toml``).  With *path* the TOML file's values take
    precedence over both.

    Raises
    ------
    ConfigLoadError
        If *path* cannot be read or is not valid TOML.
    """
    if path is None:
        return AppConfig()
    try:
        data = tomllib.loads(path.read_text())
    except FileNotFoundError:
        msg = f"config file not found: {path}"
        raise ConfigLoadError(msg) from None
    except tomllib.TOMLDecodeError as exc:
        msg = f"config file contains invalid TOML: {exc}"
        raise ConfigLoadError(msg) from None
    return AppConfig(**data)
