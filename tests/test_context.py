"""
Tests for building tokens from arguments and request context.
"""
import ipaddress
import logging
import time
import pytest
from prometheus_client import REGISTRY
from starlette.requests import Request
from dtoken.config import settings
from dtoken.context import build_token, parse_method, parse_precision
from dtoken.codec import CURRENT_SCHEMA
from dtoken.errors import FieldOverflow, InvalidAddressLiteral
from dtoken.models import Method, Protocol, TimeType


def make_request(
    method="POST",
    client=("192.0.2.10", 51515),
    server=("198.51.100.1", 443),
    headers=None,
):
    scope = {
        "type": "http",
        "method": method,
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
        "server": server,
    }
    return Request(scope)


def test_explicit_fields(peel):
    """Test explicit arguments end up in the token."""
    issued = build_token(
        method="GET",
        precision="s",
        timestamp=1700000000,
        address="192.0.2.1",
        address_port=8080,
        id1=12,
        id2=34,
    )
    assert issued.warnings == []
    assert issued.schema_version == "0.1.0"

    fields = peel(issued.token)
    assert fields["timestamp"] == 1700000000
    assert fields["method"] == 1
    assert fields["client"]["address"] == int(ipaddress.IPv4Address("192.0.2.1"))
    assert fields["client"]["port"] == 8080
    assert fields["load_balancer"]["enabled"] is False
    assert fields["server"]["enabled"] is False
    assert fields["id1"] == 12
    assert fields["id2"] == 34


def test_defaults_without_request():
    """Test timestamp defaults to now and method to unknown."""
    before = int(time.time())
    issued = build_token()
    assert issued.record.time_type == TimeType.SECONDS
    assert before <= issued.record.timestamp <= int(time.time())
    assert issued.record.method == 0
    assert not issued.record.client.enabled


def test_microsecond_precision_default_timestamp():
    """Test microsecond precision picks a microsecond timestamp."""
    issued = build_token(precision="us")
    assert issued.record.time_type == TimeType.MICROSECONDS
    assert issued.record.timestamp > 10 ** 15


def test_lenient_drops_invalid_address():
    """Test an invalid address is dropped with a warning."""
    issued = build_token(address="not-an-ip", balancer="10.0.0.1", policy="lenient")
    assert not issued.record.client.enabled
    assert issued.record.load_balancer.enabled
    assert len(issued.warnings) == 1
    assert "not-an-ip" in issued.warnings[0]


def test_strict_rejects_invalid_address():
    """Test an invalid address raises in strict mode."""
    with pytest.raises(InvalidAddressLiteral) as exc:
        build_token(server="300.1.1.1", policy="strict")
    assert exc.value.field == "server"


def test_lenient_drops_out_of_range_ids():
    """Test ids beyond their width become absent."""
    issued = build_token(id1=1 << 23, id2=5, policy="lenient")
    assert issued.record.id1 == 0
    assert issued.record.id2 == 5
    assert any("id1" in w for w in issued.warnings)


def test_strict_rejects_out_of_range_ids():
    """Test ids beyond their width raise in strict mode."""
    with pytest.raises(FieldOverflow):
        build_token(id2=1 << 15, policy="strict")


def test_lenient_drops_bad_port_keeps_address():
    """Test an out-of-range port is dropped but the address is kept."""
    issued = build_token(address="::1", address_port=70000, policy="lenient")
    assert issued.record.client.enabled
    assert issued.record.client.protocol == Protocol.IPV6
    assert issued.record.client.port == 0
    assert len(issued.warnings) == 1


def test_lenient_method_and_precision():
    """Test invalid method and precision fall back with warnings."""
    issued = build_token(method="PROPFIND", precision="ms", policy="lenient")
    assert issued.record.method == 0
    assert issued.record.time_type == TimeType.SECONDS
    assert len(issued.warnings) == 2


def test_lenient_timestamp_overflow_uses_now():
    """Test an oversized timestamp is replaced by the current time."""
    issued = build_token(timestamp=1 << 40, precision="s", policy="lenient")
    assert issued.record.timestamp < 1 << 32
    assert issued.warnings


def test_strict_method_out_of_range():
    """Test a method code above 9 raises in strict mode."""
    with pytest.raises(FieldOverflow):
        build_token(method=12, policy="strict")


def test_parse_method():
    """Test verb names and codes."""
    assert parse_method("post", CURRENT_SCHEMA) == Method.POST
    assert parse_method("9", CURRENT_SCHEMA) == Method.PATCH
    assert parse_method(0, CURRENT_SCHEMA) == 0
    with pytest.raises(FieldOverflow):
        parse_method("BREW", CURRENT_SCHEMA)
    with pytest.raises(FieldOverflow):
        parse_method("²", CURRENT_SCHEMA)


def test_parse_precision():
    """Test precision aliases."""
    assert parse_precision("s") == TimeType.SECONDS
    assert parse_precision(1) == TimeType.MICROSECONDS
    with pytest.raises(FieldOverflow):
        parse_precision(2)


def test_unknown_policy():
    """Test an unknown policy name is rejected."""
    with pytest.raises(ValueError, match="Unknown field policy"):
        build_token(policy="loose")


def test_fields_from_request(peel):
    """Test client, load balancer, server and method come from the request."""
    request = make_request(headers={"X-TS-LB": "10.0.0.9"})
    issued = build_token(request, timestamp=1)
    record = issued.record

    assert record.method == Method.POST
    assert record.client.host == "192.0.2.10"
    assert record.client.port == 51515
    assert record.load_balancer.host == "10.0.0.9"
    assert record.load_balancer.port == 0
    assert record.server.host == "198.51.100.1"
    assert record.server.port == 443
    assert issued.warnings == []

    fields = peel(issued.token)
    assert fields["server"]["port"] == 443
    assert fields["load_balancer"]["address"] == int(ipaddress.IPv4Address("10.0.0.9"))


def test_request_ports_can_be_excluded(monkeypatch):
    """Test INCLUDE_PORTS=false leaves derived ports out."""
    monkeypatch.setattr(settings, "INCLUDE_PORTS", False)
    record = build_token(make_request()).record
    assert record.client.enabled
    assert record.client.port == 0
    assert record.server.port == 0


def test_non_ip_request_hosts_are_absent():
    """Test hostnames from the connection are ignored without warnings."""
    request = make_request(method="PROPFIND", client=("testclient", 50000), server=("testserver", 80))
    issued = build_token(request, policy="strict")
    assert not issued.record.client.enabled
    assert not issued.record.server.enabled
    assert issued.record.method == 0
    assert issued.warnings == []


def test_explicit_values_override_request():
    """Test explicit arguments win over request values."""
    request = make_request(headers={"X-TS-LB": "10.0.0.9, 10.0.0.10"})
    issued = build_token(request, method="DELETE", address="2001:db8::5", balancer_port=8443)
    assert issued.record.method == Method.DELETE
    assert issued.record.client.host == "2001:db8::5"
    assert issued.record.client.port == 0
    assert issued.record.load_balancer.host == "10.0.0.9"
    assert issued.record.load_balancer.port == 8443


def test_policy_default_from_settings(monkeypatch):
    """Test FIELD_POLICY is used when no policy is passed."""
    monkeypatch.setattr(settings, "FIELD_POLICY", "strict")
    with pytest.raises(InvalidAddressLiteral):
        build_token(address="nope")


def test_lenient_non_ascii_digit_method():
    """Test a unicode digit method is dropped, not a crash."""
    issued = build_token(method="\u00b2", policy="lenient")
    assert issued.record.method == 0
    assert len(issued.warnings) == 1
    assert "method" in issued.warnings[0]


def _fallbacks(field):
    return REGISTRY.get_sample_value("dtoken_field_fallbacks_total", {"field": field}) or 0.0


def test_lenient_drop_counts_and_logs(caplog):
    """Test a dropped field bumps the fallback counter and logs the field name."""
    before = _fallbacks("id1")
    with caplog.at_level(logging.WARNING, logger="dtoken.context"):
        build_token(id1=1 << 23, policy="lenient")
    assert _fallbacks("id1") == before + 1

    dropped = [r for r in caplog.records if getattr(r, "field", None) == "id1"]
    assert len(dropped) == 1
    assert dropped[0].levelno == logging.WARNING


def test_strict_does_not_count_fallbacks():
    """Test strict failures are not counted as fallbacks."""
    before = _fallbacks("id2")
    with pytest.raises(FieldOverflow):
        build_token(id2=1 << 15, policy="strict")
    assert _fallbacks("id2") == before
