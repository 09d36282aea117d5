from fastapi import APIRouter, Request
from dtoken.codec import get_schema, list_schemas
from dtoken.context import build_token
from dtoken.errors import FieldOverflow, InvalidAddressLiteral
from dtoken.models import ApiResponse, IssuedToken, TokenRequest
from dtoken.summary import describe_record

router = APIRouter()


def _current_token(request: Request) -> str:
    issued = getattr(request.state, "dtoken", None)
    return issued.token if issued is not None else ""


def _token_data(issued: IssuedToken) -> dict:
    return {
        "token": issued.token,
        "schema": issued.schema_version,
        "fields": dict(describe_record(issued.record)),
        "warnings": issued.warnings,
    }


@router.get("/token")
async def current_token(request: Request):
    """Token issued for this very request."""
    issued = getattr(request.state, "dtoken", None)
    if issued is None:
        issued = build_token(request, policy="lenient", source="api")
    return ApiResponse.success(data=_token_data(issued), token=issued.token)


@router.post("/tokens")
async def create_token(request: Request, body: TokenRequest):
    """Build a token from explicit fields, falling back to the request context."""
    req_token = _current_token(request)

    try:
        issued = build_token(request, **body.model_dump(), source="api")
        return ApiResponse.success(data=_token_data(issued), token=req_token)

    except FieldOverflow as e:
        return ApiResponse.failure(
            code="field_overflow",
            message=str(e),
            details={"field": e.field, "width": e.width},
            token=req_token,
        )
    except InvalidAddressLiteral as e:
        return ApiResponse.failure(
            code="invalid_address",
            message=str(e),
            details={"field": e.field},
            token=req_token,
        )


@router.get("/schemas")
async def schemas(request: Request):
    """Registered schema versions."""
    return ApiResponse.success(data={"versions": list_schemas()}, token=_current_token(request))


@router.get("/schemas/{version}")
async def schema_layout(request: Request, version: str):
    """Field table of one schema, in encoding order."""
    req_token = _current_token(request)

    try:
        schema = get_schema(version)
    except ValueError as e:
        return ApiResponse.failure(code="not_found", message=str(e), token=req_token)

    return ApiResponse.success(
        data={
            "version": schema.version_string,
            "max_bits": schema.max_bits,
            "layout": [{"field": name, "width": width} for name, width in schema.layout()],
        },
        token=req_token,
    )
