"""Chat Relay: thin ordered message relay between students and admins."""

from .relay import ChatRelay

__all__ = ["ChatRelay"]
