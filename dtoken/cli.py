"""Dtoken - build request tokens from the terminal."""
from __future__ import annotations

from typing import Optional

import click

from dtoken.codec import encode_token, get_schema
from dtoken.config import settings
from dtoken.context import now_timestamp
from dtoken.errors import DtokenError
from dtoken.models import Endpoint, Method, TimeType, TokenRecord
from dtoken.observability.metrics import tokens_issued_total
from dtoken.summary import describe_record


class AddressType(click.ParamType):
    """IPv4 or IPv6 literal; empty input means "none"."""

    name = "address"

    def convert(self, value, param, ctx):
        if value is None or isinstance(value, Endpoint):
            return value
        if not value.strip():
            return None
        try:
            return Endpoint.from_ip(value)
        except ValueError:
            self.fail("Invalid address.", param, ctx)


class OptionalIntType(click.ParamType):
    """Integer in 1..maximum; empty input means "none"."""

    name = "integer"

    def __init__(self, maximum: int, label: str):
        self.maximum = maximum
        self.label = label

    def convert(self, value, param, ctx):
        if value is None or isinstance(value, int):
            number = value
        elif not value.strip():
            return None
        else:
            try:
                number = int(value)
            except ValueError:
                self.fail(f"Invalid {self.label}.", param, ctx)
        if number is not None and not 0 < number <= self.maximum:
            self.fail(f"Invalid {self.label}.", param, ctx)
        return number


METHOD_CHOICE = click.Choice([m.name for m in Method], case_sensitive=False)
PRECISION_CHOICE = click.Choice(["s", "us"])
PORT_TYPE = OptionalIntType(65535, "port")
# Option values are range checked against the schema widths when encoding;
# prompts use the schema widths directly so they can re-prompt.
ID_TYPE = OptionalIntType((1 << 31) - 1, "option")


def _ask(text: str, type, default: Optional[str] = ""):
    return click.prompt(text, default=default, show_default=False, type=type)


@click.group()
def main():
    """Build and inspect dtoken request tokens."""


@main.command("build")
@click.option("--precision", type=PRECISION_CHOICE, default=None, help="Timestamp precision (s/us)")
@click.option("--timestamp", type=click.IntRange(min=0), default=None, help="Timestamp; defaults to now")
@click.option("--method", type=METHOD_CHOICE, default=None, help="HTTP method")
@click.option("--client", type=AddressType(), default=None, help="Client IP address")
@click.option("--client-port", type=PORT_TYPE, default=None)
@click.option("--lb", "balancer", type=AddressType(), default=None, help="Load balancer IP address")
@click.option("--lb-port", "balancer_port", type=PORT_TYPE, default=None)
@click.option("--server", type=AddressType(), default=None, help="Server IP address")
@click.option("--server-port", type=PORT_TYPE, default=None)
@click.option("--id1", type=ID_TYPE, default=None, help="Generic id 1")
@click.option("--id2", type=ID_TYPE, default=None, help="Generic id 2")
@click.option("--schema", "schema_version", default=lambda: settings.SCHEMA_VERSION, show_default="SCHEMA_VERSION")
@click.option("-i", "--interactive", is_flag=True, help="Prompt for every field not given")
def build_cmd(
    precision, timestamp, method, client, client_port, balancer, balancer_port,
    server, server_port, id1, id2, schema_version, interactive,
):
    """Encode one request token and print it with a field summary."""
    try:
        schema = get_schema(schema_version)
    except ValueError as e:
        click.echo(f"FATAL: {e}")
        raise SystemExit(1)

    if interactive:
        id1_type = OptionalIntType((1 << schema.id1_width) - 1, "option")
        id2_type = OptionalIntType((1 << schema.id2_width) - 1, "option")
        if precision is None:
            precision = _ask("Enter time precision (s/us) [s]", PRECISION_CHOICE, default="s")
        if method is None:
            method = _ask("Enter HTTP method (GET, POST, PUT, etc.) [GET]", METHOD_CHOICE, default="GET")
        if client is None:
            client = _ask("Enter client IP address (leave empty for none)", AddressType())
        if client is not None and client_port is None:
            client_port = _ask("Enter client port (leave empty for none)", PORT_TYPE)
        if balancer is None:
            balancer = _ask("Enter load balancer IP address (leave empty for none)", AddressType())
        if balancer is not None and balancer_port is None:
            balancer_port = _ask("Enter load balancer port (leave empty for none)", PORT_TYPE)
        if server is None:
            server = _ask("Enter server IP address (leave empty for none)", AddressType())
        if server is not None and server_port is None:
            server_port = _ask("Enter server port (leave empty for none)", PORT_TYPE)
        if id1 is None:
            id1 = _ask("Enter generic id 1 (leave empty for none)", id1_type)
        if id2 is None:
            id2 = _ask("Enter generic id 2 (leave empty for none)", id2_type)
        click.echo()

    for name, address, port in (
        ("client", client, client_port),
        ("lb", balancer, balancer_port),
        ("server", server, server_port),
    ):
        if address is None and port is not None:
            raise click.UsageError(f"--{name}-port requires --{name}")

    time_type = TimeType.MICROSECONDS if precision == "us" else TimeType.SECONDS

    def endpoint(value: Optional[Endpoint], port: Optional[int]) -> Endpoint:
        if value is None:
            return Endpoint()
        return value.model_copy(update={"port": port or 0})

    try:
        record = TokenRecord(
            timestamp=timestamp if timestamp is not None else now_timestamp(time_type),
            time_type=time_type,
            method=int(Method[(method or "GET").upper()]),
            client=endpoint(client, client_port),
            load_balancer=endpoint(balancer, balancer_port),
            server=endpoint(server, server_port),
            id1=id1 or 0,
            id2=id2 or 0,
        )
        token = encode_token(record, schema)
    except (DtokenError, ValueError) as e:
        # Fail closed with a single-line reason.
        click.echo(f"FATAL: {e}")
        raise SystemExit(1)

    tokens_issued_total.labels(source="cli").inc()

    for label, value in describe_record(record):
        click.echo(f"{label + ':':<15}{value}")
    click.echo(f"\nToken: {token}")


@main.command("layout")
@click.option("--schema", "schema_version", default=lambda: settings.SCHEMA_VERSION, show_default="SCHEMA_VERSION")
def layout_cmd(schema_version: str):
    """Print the field table of a schema, least significant field first."""
    try:
        schema = get_schema(schema_version)
    except ValueError as e:
        click.echo(f"FATAL: {e}")
        raise SystemExit(1)

    click.echo(f"Schema {schema.version_string} ({schema.max_bits} bits max)")
    position = 0
    for name, width in reversed(schema.layout()):
        click.echo(f"{position:>4} {width:>4}  {name}")
        position += width


if __name__ == "__main__":
    main()
