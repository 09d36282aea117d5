"""
Error types raised by the codec and its adapters.
"""
from typing import Any, Optional


class DtokenError(Exception):
    """Base class for all dtoken errors."""


class FieldOverflow(DtokenError, ValueError):
    """A field value does not fit the range reserved for it."""

    def __init__(self, field: str, value: Any, width: int, maximum: Optional[int] = None):
        self.field = field
        self.value = value
        self.width = width
        self.maximum = maximum if maximum is not None else (1 << width) - 1
        super().__init__(
            f"{field}={value!r} is out of range for a {width}-bit field "
            f"(allowed 0..{self.maximum})"
        )


class InvalidAddressLiteral(DtokenError, ValueError):
    """A string is not a valid IPv4 or IPv6 address."""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"{field}={value!r} is not a valid IPv4 or IPv6 address")
