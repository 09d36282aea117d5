from fastapi import FastAPI, Request
from dotenv import load_dotenv
import logging
from dtoken.utils.logging import configure_logging
from dtoken.config import settings
from dtoken.routes import tokens as tokens_routes
from dtoken.models import ApiResponse
from dtoken.middleware.token import DtokenMiddleware
from dtoken.observability.metrics import setup_metrics

load_dotenv()
configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(title="Dtoken", version="0.1.0")

# Setup Prometheus metrics if enabled
setup_metrics(app)

app.add_middleware(DtokenMiddleware)


@app.on_event("startup")
async def _startup():
    logger.info(
        f"Dtoken started (schema {settings.SCHEMA_VERSION}, policy {settings.FIELD_POLICY})"
    )


@app.get("/healthz")
async def health(request: Request):
    """Basic health check."""
    return ApiResponse.success(data={"status": "healthy"}, token=request.state.dtoken.token)


app.include_router(tokens_routes.router)
