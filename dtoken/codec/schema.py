"""
Versioned token schemas.

A schema fixes the width of every field and the version burned into each
token. Several schemas can be registered side by side so that tokens issued
under an older layout stay describable.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from dtoken.errors import FieldOverflow


class Schema(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: Tuple[int, int, int]

    version_major_width: int = 4
    version_minor_width: int = 8
    version_patch_width: int = 4
    time_type_width: int = 1
    time_s_width: int = 32
    time_us_width: int = 52
    method_width: int = 4
    method_max: int = 9
    id1_width: int = 23
    id2_width: int = 15
    port_width: int = 16
    ipv4_width: int = 32
    ipv6_width: int = 128

    @model_validator(mode="after")
    def _version_fits(self) -> "Schema":
        widths = (self.version_major_width, self.version_minor_width, self.version_patch_width)
        for name, part, width in zip(("major", "minor", "patch"), self.version, widths):
            if not 0 <= part < (1 << width):
                raise FieldOverflow(f"version_{name}", part, width)
        return self

    @property
    def version_string(self) -> str:
        return ".".join(str(part) for part in self.version)

    def endpoint_layout(self, name: str) -> List[Tuple[str, int]]:
        """Rows for one fully populated IPv6 endpoint, in encoding order."""
        return [
            (f"{name}.port", self.port_width),
            (f"{name}.port_flag", 1),
            (f"{name}.address", self.ipv6_width),
            (f"{name}.protocol", 1),
            (f"{name}.enabled", 1),
        ]

    def layout(self) -> List[Tuple[str, int]]:
        """
        The schema table: (field, width) rows in encoding order. The first
        row ends up in the most significant bits, the last row in the
        lowest. Optional fields are shown at their widest (present, IPv6,
        microseconds).
        """
        rows: List[Tuple[str, int]] = [
            ("id2", self.id2_width),
            ("id2.flag", 1),
            ("id1", self.id1_width),
            ("id1.flag", 1),
        ]
        for name in ("server", "load_balancer", "client"):
            rows.extend(self.endpoint_layout(name))
        rows.extend([
            ("method", self.method_width),
            ("timestamp", self.time_us_width),
            ("time_type", self.time_type_width),
            ("version.major", self.version_major_width),
            ("version.minor", self.version_minor_width),
            ("version.patch", self.version_patch_width),
        ])
        return rows

    @property
    def max_bits(self) -> int:
        """Worst-case bit length of a fully populated record."""
        return sum(width for _, width in self.layout())


_registry: Dict[str, Schema] = {}


def register_schema(schema: Schema) -> Schema:
    _registry[schema.version_string] = schema
    return schema


def get_schema(version: str) -> Schema:
    if version not in _registry:
        raise ValueError(f"Unknown schema version: {version}")
    return _registry[version]


def list_schemas() -> List[str]:
    return sorted(_registry.keys())


CURRENT_SCHEMA = register_schema(Schema(version=(0, 1, 0)))
