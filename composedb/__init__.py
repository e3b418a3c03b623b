"""composedb — compose request history with versioned schema migrations."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("composedb")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
