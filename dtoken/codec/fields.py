"""
Field encoders.

Each encoder takes the accumulator built so far, shifts it left by the width
of one field and puts that field in the freed low bits. Encoders do no range
checking; the assembler validates the whole record before calling them.
"""
from dtoken.codec.schema import Schema
from dtoken.errors import FieldOverflow
from dtoken.models import Endpoint, Protocol


def check_width(field: str, value: int, width: int, maximum: int = None) -> None:
    """Raise FieldOverflow unless 0 <= value <= maximum (default: width limit)."""
    limit = maximum if maximum is not None else (1 << width) - 1
    if value < 0 or value > limit:
        raise FieldOverflow(field, value, width, maximum=limit)


def append_bits(acc: int, value: int, width: int) -> int:
    return (acc << width) | value


def append_flag(acc: int, flag: bool) -> int:
    return append_bits(acc, 1 if flag else 0, 1)


def append_optional(acc: int, value: int, width: int) -> int:
    """Value followed by a present flag, or a single absent flag for 0."""
    if not value:
        return append_flag(acc, False)
    return append_flag(append_bits(acc, value, width), True)


def append_port(acc: int, port: int, schema: Schema) -> int:
    return append_optional(acc, port, schema.port_width)


def append_address(acc: int, endpoint: Endpoint, schema: Schema) -> int:
    """
    Address body, protocol bit and enabled bit; a disabled endpoint is a
    single 0 bit whatever its other attributes hold.
    """
    if not endpoint.enabled:
        return append_flag(acc, False)

    if endpoint.protocol == Protocol.IPV4:
        acc = append_bits(acc, endpoint.address, schema.ipv4_width)
    else:
        acc = append_bits(acc, endpoint.address, schema.ipv6_width)
    acc = append_bits(acc, int(endpoint.protocol), 1)

    return append_flag(acc, True)


def append_endpoint(acc: int, endpoint: Endpoint, schema: Schema) -> int:
    # The port only exists for enabled endpoints.
    if endpoint.enabled:
        acc = append_port(acc, endpoint.port, schema)
    return append_address(acc, endpoint, schema)
