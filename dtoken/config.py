from __future__ import annotations
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    # Token fields
    TIME_PRECISION: Literal["s", "us"] = "s"
    SCHEMA_VERSION: str = "0.1.0"
    INCLUDE_PORTS: bool = True

    # Invalid caller input: "lenient" drops the field and warns, "strict" raises
    FIELD_POLICY: Literal["lenient", "strict"] = "lenient"

    # Headers
    LB_HEADER: str = "X-TS-LB"
    TOKEN_HEADER: str = "X-Dtoken"

    # Observability
    LOG_JSON: bool = False

settings = Settings()
