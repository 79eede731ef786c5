"""avatartrack - landmark tracking to 2D avatar rig motion pipeline."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("avatartrack")
except PackageNotFoundError:
    __version__ = "unknown"
