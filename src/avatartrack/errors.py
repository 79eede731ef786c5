"""Exception taxonomy for the tracking pipeline."""

from __future__ import annotations


class AvatarTrackError(Exception):
    """Base class for all avatartrack errors."""


class MappingError(AvatarTrackError):
    """Raised when upstream channels have an unexpected shape for a rig component.

    The rig mapper catches this per component and substitutes last-known or
    neutral values for the affected joints only.
    """


class ConfigLoadError(AvatarTrackError, ValueError):
    """Raised when a configuration file cannot be read or parsed."""
