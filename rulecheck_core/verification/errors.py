"""
Errors raised while encoding verification conditions to Z3 or decoding
the models Z3 returns.

All of them are recoverable at the granularity of one verification
condition: the checker turns them into a failed result and moves on.
"""

from typing import Optional


class EncodingError(Exception):
    """Base exception for the Z3 encoding and model decoding layers."""
    def __init__(self, message: str, location: Optional[tuple] = None):
        self.message = message
        self.location = location
        prefix = f"Line {location[0]}, Col {location[1]}: " if location else ""
        super().__init__(f"{prefix}{message}")


class UnsupportedConstructError(EncodingError):
    """A type, literal, operator or term outside the encodable subset."""
    def __init__(self, construct: str, location: Optional[tuple] = None):
        self.construct = construct
        super().__init__(f"[Z3 encoding] {construct} not supported", location)


class IllFormedTermError(EncodingError):
    """A structural precondition of the IR does not hold."""
    pass


class ModelDecodeError(EncodingError):
    """A model value whose domain type cannot be pretty-printed."""
    pass


class MissingMappingError(EncodingError):
    """Internal inconsistency: a symbol, type or declaration is missing."""
    pass
