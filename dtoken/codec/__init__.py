"""
The token codec: field encoders, record assembler and radix encoder.
"""
from typing import Optional

from dtoken.codec.assembler import assemble, validate_record
from dtoken.codec.radix import from_base36, to_base36
from dtoken.codec.schema import (
    CURRENT_SCHEMA,
    Schema,
    get_schema,
    list_schemas,
    register_schema,
)
from dtoken.models import TokenRecord


def encode_token(record: TokenRecord, schema: Optional[Schema] = None) -> str:
    """Encode a record as a base-36 token. Raises FieldOverflow on bad input."""
    return to_base36(assemble(record, schema or CURRENT_SCHEMA))


__all__ = [
    "encode_token",
    "assemble",
    "validate_record",
    "to_base36",
    "from_base36",
    "Schema",
    "CURRENT_SCHEMA",
    "get_schema",
    "list_schemas",
    "register_schema",
]
