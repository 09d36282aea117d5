"""
Human-readable description of a token record.
"""
from typing import List, Tuple

from dtoken.models import Endpoint, Method, Protocol, TimeType, TokenRecord


def format_endpoint(endpoint: Endpoint) -> str:
    host = endpoint.host
    if not endpoint.port:
        return host
    if endpoint.protocol == Protocol.IPV6:
        return f"[{host}]:{endpoint.port}"
    return f"{host}:{endpoint.port}"


def format_method(code: int) -> str:
    try:
        return Method(code).name
    except ValueError:
        return f"UNKNOWN ({code})"


def describe_record(record: TokenRecord) -> List[Tuple[str, str]]:
    """
    Ordered (label, value) rows. Absent endpoints and ids are left out.
    """
    if record.time_type == TimeType.SECONDS:
        timestamp = str(record.timestamp)
    else:
        timestamp = f"{record.timestamp / 1000000.0:.6f}"

    rows = [
        ("Timestamp", timestamp),
        ("Method", format_method(record.method)),
    ]
    for label, endpoint in (
        ("Client", record.client),
        ("Load balancer", record.load_balancer),
        ("Server", record.server),
    ):
        if endpoint.enabled:
            rows.append((label, format_endpoint(endpoint)))
    if record.id1:
        rows.append(("Generic id 1", str(record.id1)))
    if record.id2:
        rows.append(("Generic id 2", str(record.id2)))
    return rows
