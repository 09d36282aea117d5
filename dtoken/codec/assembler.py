"""
Record assembler: turns a TokenRecord into the packed integer.

Order of the appends is the token format. Every append shifts the accumulator
left and puts the new field in the low bits, so the first field (id2) ends up
most significant and the version patch occupies the lowest four bits:

    id2, id1, server, load_balancer, client, method, timestamp + time type,
    version major, minor, patch
"""
from __future__ import annotations

from dtoken.codec.fields import (
    append_bits,
    append_endpoint,
    append_optional,
    check_width,
)
from dtoken.codec.schema import Schema
from dtoken.models import Endpoint, Protocol, TimeType, TokenRecord


def _check_endpoint(name: str, endpoint: Endpoint, schema: Schema) -> None:
    if not endpoint.enabled:
        return
    width = schema.ipv4_width if endpoint.protocol == Protocol.IPV4 else schema.ipv6_width
    check_width(f"{name}.address", endpoint.address, width)
    check_width(f"{name}.port", endpoint.port, schema.port_width)


def validate_record(record: TokenRecord, schema: Schema) -> None:
    """Raise FieldOverflow for the first value that does not fit the schema."""
    check_width("id2", record.id2, schema.id2_width)
    check_width("id1", record.id1, schema.id1_width)
    _check_endpoint("server", record.server, schema)
    _check_endpoint("load_balancer", record.load_balancer, schema)
    _check_endpoint("client", record.client, schema)
    check_width("method", record.method, schema.method_width, maximum=schema.method_max)
    if record.time_type == TimeType.SECONDS:
        check_width("timestamp", record.timestamp, schema.time_s_width)
    else:
        check_width("timestamp", record.timestamp, schema.time_us_width)


def assemble(record: TokenRecord, schema: Schema) -> int:
    """Validate the record, then pack it into a single non-negative integer."""
    validate_record(record, schema)

    acc = 0
    acc = append_optional(acc, record.id2, schema.id2_width)
    acc = append_optional(acc, record.id1, schema.id1_width)

    acc = append_endpoint(acc, record.server, schema)
    acc = append_endpoint(acc, record.load_balancer, schema)
    acc = append_endpoint(acc, record.client, schema)

    acc = append_bits(acc, record.method, schema.method_width)

    if record.time_type == TimeType.SECONDS:
        acc = append_bits(acc, record.timestamp, schema.time_s_width)
    else:
        acc = append_bits(acc, record.timestamp, schema.time_us_width)
    acc = append_bits(acc, int(record.time_type), schema.time_type_width)

    major, minor, patch = schema.version
    acc = append_bits(acc, major, schema.version_major_width)
    acc = append_bits(acc, minor, schema.version_minor_width)
    acc = append_bits(acc, patch, schema.version_patch_width)

    return acc
