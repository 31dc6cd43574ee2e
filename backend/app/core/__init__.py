"""Core utilities for the FrameSync backend."""

from .security import TokenValidationError, create_access_token, decode_access_token, user_id_from_token

__all__ = ["TokenValidationError", "create_access_token", "decode_access_token", "user_id_from_token"]
