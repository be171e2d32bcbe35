"""Session lifecycle and rate limiting backed by a shared Redis store."""

__version__ = "1.0.0"
