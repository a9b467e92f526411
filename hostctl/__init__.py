"""hostctl: remote server administration core."""

__version__ = "0.1.0"
