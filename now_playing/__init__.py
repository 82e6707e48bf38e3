"""Now Playing Backend"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("now-playing-backend")
except PackageNotFoundError:
    __version__ = "dev"
