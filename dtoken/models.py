from __future__ import annotations

import ipaddress
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from dtoken.errors import InvalidAddressLiteral


class TimeType(IntEnum):
    """Timestamp precision; the value is the tag bit stored in the token."""
    SECONDS = 0
    MICROSECONDS = 1


class Protocol(IntEnum):
    """Address family; the value is the protocol bit stored in the token."""
    IPV4 = 0
    IPV6 = 1


class Method(IntEnum):
    GET = 1
    POST = 2
    PUT = 3
    DELETE = 4
    HEAD = 5
    CONNECT = 6
    OPTIONS = 7
    TRACE = 8
    PATCH = 9


# 0 is stored when the request verb is not one of the known methods.
METHOD_UNKNOWN = 0


class Endpoint(BaseModel):
    """A network peer that may or may not be part of a token."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    protocol: Protocol = Protocol.IPV4
    address: int = 0
    port: int = 0

    @classmethod
    def from_ip(cls, text: str, port: int = 0, field: str = "address") -> "Endpoint":
        """
        Build an enabled endpoint from an IPv4 or IPv6 literal.
        Raises InvalidAddressLiteral when the text is not an IP address.
        """
        try:
            addr = ipaddress.ip_address(text.strip())
        except (ValueError, AttributeError):
            raise InvalidAddressLiteral(field, text)
        protocol = Protocol.IPV4 if addr.version == 4 else Protocol.IPV6
        return cls(enabled=True, protocol=protocol, address=int(addr), port=port)

    @property
    def host(self) -> str:
        if self.protocol == Protocol.IPV4:
            return str(ipaddress.IPv4Address(self.address))
        return str(ipaddress.IPv6Address(self.address))


class TokenRecord(BaseModel):
    """
    Everything that goes into one token.
    The format version is not part of the record: it comes from the schema
    the record is encoded with.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: int = 0
    time_type: TimeType = TimeType.SECONDS
    method: int = METHOD_UNKNOWN
    client: Endpoint = Field(default_factory=Endpoint)
    load_balancer: Endpoint = Field(default_factory=Endpoint)
    server: Endpoint = Field(default_factory=Endpoint)
    id1: int = 0
    id2: int = 0


class IssuedToken(BaseModel):
    """Result of building a token through an adapter."""
    token: str
    record: TokenRecord
    schema_version: str
    warnings: List[str] = Field(default_factory=list)


class TokenRequest(BaseModel):
    """Body of POST /tokens. Every field is optional."""
    method: Optional[Union[int, str]] = None
    precision: Optional[Union[int, str]] = None
    timestamp: Optional[int] = None
    address: Optional[str] = None
    address_port: Optional[int] = None
    balancer: Optional[str] = None
    balancer_port: Optional[int] = None
    server: Optional[str] = None
    server_port: Optional[int] = None
    id1: Optional[int] = None
    id2: Optional[int] = None


# API Response Envelopes
class ApiError(BaseModel):
    """Structured error response."""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ApiResponse(BaseModel):
    """Standard API response envelope."""
    ok: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None
    token: str = ""

    @classmethod
    def success(cls, data: Any = None, token: str = "") -> "ApiResponse":
        """Create a success response."""
        return cls(ok=True, data=data, token=token)

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        token: str = "",
    ) -> "ApiResponse":
        """Create an error response."""
        return cls(
            ok=False,
            error=ApiError(code=code, message=message, details=details),
            token=token,
        )
