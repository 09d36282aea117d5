"""
Prometheus metrics for dtoken.
"""
import os
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator


tokens_issued_total = Counter(
    "dtoken_tokens_issued_total",
    "Total number of tokens issued",
    ["source"],
)

field_fallbacks_total = Counter(
    "dtoken_field_fallbacks_total",
    "Total number of invalid fields dropped under the lenient policy",
    ["field"],
)


def setup_metrics(app):
    """
    Setup Prometheus metrics for the FastAPI app.
    Only enables if METRICS_ENABLED environment variable is set to true.

    Args:
        app: FastAPI application instance
    """
    metrics_enabled = os.getenv("METRICS_ENABLED", "").lower() in ("true", "1", "yes")

    if not metrics_enabled:
        return

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["observability"])
