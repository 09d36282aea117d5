"""
Request-context adapter: collects token fields from arguments and from the
incoming HTTP request, validates them and calls the codec.

Caller-supplied values go through the field policy:
- "lenient": an invalid value is dropped (absent, zero or "now"), a warning
  is logged and returned with the token.
- "strict": an invalid value raises FieldOverflow or InvalidAddressLiteral.

Values read from the request itself (remote address, forwarding header,
bind address, verb) are never fatal; anything that is not an IP literal or
a known verb is treated as absent.
"""
from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple, Union

from starlette.requests import Request

from dtoken.codec import encode_token, get_schema
from dtoken.codec.fields import check_width
from dtoken.codec.schema import Schema
from dtoken.config import settings
from dtoken.errors import DtokenError, FieldOverflow, InvalidAddressLiteral
from dtoken.models import (
    METHOD_UNKNOWN,
    Endpoint,
    IssuedToken,
    Method,
    TimeType,
    TokenRecord,
)
from dtoken.observability.metrics import field_fallbacks_total, tokens_issued_total

logger = logging.getLogger(__name__)


class FieldPolicy:
    """Collects warnings for dropped fields, or raises in strict mode."""

    def __init__(self, policy: str):
        if policy not in ("lenient", "strict"):
            raise ValueError(f"Unknown field policy: {policy}")
        self.strict = policy == "strict"
        self.warnings: List[str] = []

    def reject(self, error: DtokenError) -> None:
        if self.strict:
            raise error
        message = str(error)
        logger.warning(f"Dropping invalid field: {message}", extra={"field": error.field})
        field_fallbacks_total.labels(field=error.field).inc()
        self.warnings.append(message)


def parse_method(value: Union[int, str], schema: Schema) -> int:
    """Method code from a verb name or an integer code."""
    if isinstance(value, str):
        text = value.strip().upper()
        # isdigit() alone accepts "²" and friends, which int() rejects
        if text.isascii() and text.isdigit():
            value = int(text)
        elif text in Method.__members__:
            return int(Method[text])
        else:
            raise FieldOverflow("method", value, schema.method_width, maximum=schema.method_max)
    check_width("method", value, schema.method_width, maximum=schema.method_max)
    return int(value)


def parse_precision(value: Union[int, str, None]) -> TimeType:
    if value is None:
        value = settings.TIME_PRECISION
    if value in ("s", 0):
        return TimeType.SECONDS
    if value in ("us", 1):
        return TimeType.MICROSECONDS
    raise FieldOverflow("precision", value, 1)


def now_timestamp(time_type: TimeType) -> int:
    if time_type == TimeType.MICROSECONDS:
        return time.time_ns() // 1000
    return int(time.time())


def _timestamp_width(time_type: TimeType, schema: Schema) -> int:
    if time_type == TimeType.MICROSECONDS:
        return schema.time_us_width
    return schema.time_s_width


def _derived_endpoint(field: str, host: Optional[str], port: Optional[int]) -> Endpoint:
    """Endpoint from a value the request itself carries."""
    if not host:
        return Endpoint()
    try:
        endpoint = Endpoint.from_ip(host, field=field)
    except InvalidAddressLiteral:
        logger.debug(f"Ignoring non-IP {field} {host!r}", extra={"field": field})
        return Endpoint()
    if settings.INCLUDE_PORTS and isinstance(port, int) and 0 < port < 65536:
        endpoint = endpoint.model_copy(update={"port": port})
    return endpoint


def _peer(value) -> Tuple[Optional[str], Optional[int]]:
    if not value:
        return None, None
    host, port = value[0], value[1] if len(value) > 1 else None
    return host, port


def endpoints_from_request(request: Request) -> Tuple[Endpoint, Endpoint, Endpoint]:
    """(client, load_balancer, server) as seen by the server."""
    client = _derived_endpoint("client", *_peer(request.client))

    forwarded = request.headers.get(settings.LB_HEADER)
    lb_host = forwarded.split(",")[0].strip() if forwarded else None
    load_balancer = _derived_endpoint("load_balancer", lb_host, None)

    server = _derived_endpoint("server", *_peer(request.scope.get("server")))
    return client, load_balancer, server


def method_from_request(request: Request) -> int:
    verb = request.method.upper()
    if verb in Method.__members__:
        return int(Method[verb])
    return METHOD_UNKNOWN


def _explicit_endpoint(
    field: str,
    address: Optional[str],
    port: Optional[int],
    derived: Endpoint,
    policy: FieldPolicy,
    schema: Schema,
) -> Endpoint:
    endpoint = derived
    if address is not None:
        try:
            endpoint = Endpoint.from_ip(address, field=field)
        except InvalidAddressLiteral as e:
            policy.reject(e)
            endpoint = Endpoint()

    if port is not None and endpoint.enabled:
        try:
            check_width(f"{field}.port", port, schema.port_width)
            endpoint = endpoint.model_copy(update={"port": port})
        except FieldOverflow as e:
            policy.reject(e)
    return endpoint


def _explicit_id(field: str, value: Optional[int], width: int, policy: FieldPolicy) -> int:
    if value is None:
        return 0
    try:
        check_width(field, value, width)
    except FieldOverflow as e:
        policy.reject(e)
        return 0
    return value


def build_token(
    request: Optional[Request] = None,
    *,
    method: Union[int, str, None] = None,
    precision: Union[int, str, None] = None,
    timestamp: Optional[int] = None,
    address: Optional[str] = None,
    address_port: Optional[int] = None,
    balancer: Optional[str] = None,
    balancer_port: Optional[int] = None,
    server: Optional[str] = None,
    server_port: Optional[int] = None,
    id1: Optional[int] = None,
    id2: Optional[int] = None,
    policy: Optional[str] = None,
    schema: Optional[Schema] = None,
    source: str = "api",
) -> IssuedToken:
    """
    Build a token from explicit values, falling back to the request for
    anything not given. Without a request, missing endpoints are absent and
    a missing method is stored as unknown.
    """
    schema = schema or get_schema(settings.SCHEMA_VERSION)
    checker = FieldPolicy(policy or settings.FIELD_POLICY)

    try:
        time_type = parse_precision(precision)
    except FieldOverflow as e:
        checker.reject(e)
        time_type = TimeType.SECONDS

    if timestamp is None:
        stamp = now_timestamp(time_type)
    else:
        try:
            check_width("timestamp", timestamp, _timestamp_width(time_type, schema))
            stamp = timestamp
        except FieldOverflow as e:
            checker.reject(e)
            stamp = now_timestamp(time_type)

    if method is not None:
        try:
            method_code = parse_method(method, schema)
        except FieldOverflow as e:
            checker.reject(e)
            method_code = METHOD_UNKNOWN
    elif request is not None:
        method_code = method_from_request(request)
    else:
        method_code = METHOD_UNKNOWN

    if request is not None:
        derived = endpoints_from_request(request)
    else:
        derived = (Endpoint(), Endpoint(), Endpoint())

    record = TokenRecord(
        timestamp=stamp,
        time_type=time_type,
        method=method_code,
        client=_explicit_endpoint("client", address, address_port, derived[0], checker, schema),
        load_balancer=_explicit_endpoint(
            "load_balancer", balancer, balancer_port, derived[1], checker, schema
        ),
        server=_explicit_endpoint("server", server, server_port, derived[2], checker, schema),
        id1=_explicit_id("id1", id1, schema.id1_width, checker),
        id2=_explicit_id("id2", id2, schema.id2_width, checker),
    )

    token = encode_token(record, schema)
    tokens_issued_total.labels(source=source).inc()

    return IssuedToken(
        token=token,
        record=record,
        schema_version=schema.version_string,
        warnings=checker.warnings,
    )
