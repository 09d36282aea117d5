"""
Dtoken: compact base-36 tokens describing a single web request.
"""
from dtoken.codec import encode_token, CURRENT_SCHEMA
from dtoken.errors import DtokenError, FieldOverflow, InvalidAddressLiteral
from dtoken.models import Endpoint, Method, Protocol, TimeType, TokenRecord

__all__ = [
    "encode_token",
    "CURRENT_SCHEMA",
    "DtokenError",
    "FieldOverflow",
    "InvalidAddressLiteral",
    "Endpoint",
    "Method",
    "Protocol",
    "TimeType",
    "TokenRecord",
]
