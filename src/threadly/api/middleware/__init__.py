"""Starlette middlewares and exception handlers."""
