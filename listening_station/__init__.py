"""Listening Station playback engine"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("listening-station")
except PackageNotFoundError:
    __version__ = "dev"
