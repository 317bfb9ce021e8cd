"""Core utilities shared across Threadly modules."""
