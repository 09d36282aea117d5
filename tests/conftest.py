"""
Shared test helpers.
"""
import pytest
from dtoken.codec import from_base36


class BitReader:
    """Takes fields off the low end of a packed token."""

    def __init__(self, value: int):
        self.value = value
        self.consumed = 0

    def take(self, width: int) -> int:
        field = self.value & ((1 << width) - 1)
        self.value >>= width
        self.consumed += width
        return field


def _peel_endpoint(reader: BitReader) -> dict:
    start = reader.consumed
    if not reader.take(1):
        return {"enabled": False, "bits": reader.consumed - start}
    protocol = reader.take(1)
    address = reader.take(128 if protocol else 32)
    port = reader.take(16) if reader.take(1) else 0
    return {
        "enabled": True,
        "protocol": protocol,
        "address": address,
        "port": port,
        "bits": reader.consumed - start,
    }


def peel_token(token: str) -> dict:
    """Split a 0.1.0 token back into its fields, lowest bits first."""
    reader = BitReader(from_base36(token))
    fields = {}
    fields["version"] = tuple(reversed([reader.take(4), reader.take(8), reader.take(4)]))
    fields["time_type"] = reader.take(1)
    fields["timestamp"] = reader.take(52 if fields["time_type"] else 32)
    fields["method"] = reader.take(4)
    fields["client"] = _peel_endpoint(reader)
    fields["load_balancer"] = _peel_endpoint(reader)
    fields["server"] = _peel_endpoint(reader)
    fields["id1"] = reader.take(23) if reader.take(1) else 0
    fields["id2"] = reader.take(15) if reader.take(1) else 0
    fields["rest"] = reader.value
    return fields


@pytest.fixture
def peel():
    return peel_token
