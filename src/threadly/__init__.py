"""Threadly - Slack connections with scheduled message delivery."""

from ._version import __version__


__all__ = ["__version__"]
