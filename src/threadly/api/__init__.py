"""HTTP API for Threadly."""

from threadly.api.app import create_app, get_app


__all__ = ["create_app", "get_app"]
