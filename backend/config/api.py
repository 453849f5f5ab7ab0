"""
Django Ninja API configuration.
"""

from django.db import DatabaseError, connection
from django.http import HttpRequest, HttpResponse
from ninja import NinjaAPI
from ninja.errors import HttpError, ValidationError
from ninja.parser import Parser

from apps.accounts.api import router as session_router
from apps.core.logging import get_logger
from apps.core.schemas import ErrorResponse
from apps.devices.api import router as devices_router
from apps.passkeys.api import router as passkeys_router

logger = get_logger(__name__)

FORM_CONTENT_TYPES = {"multipart/form-data", "application/x-www-form-urlencoded"}

# Parameter sources ninja puts in front of field names in error locations
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie", "form", "payload"}


class BodyParser(Parser):
    """
    JSON request bodies. A blank or form-encoded body carries no JSON, so it
    parses as an empty object and optional payloads fall back to defaults.
    """

    def parse_body(self, request: HttpRequest) -> dict:
        if request.content_type in FORM_CONTENT_TYPES:
            return request.POST.dict()
        if not request.body.strip():
            return {}
        return super().parse_body(request)


api = NinjaAPI(
    parser=BodyParser(),
    title="den API",
    version="1.0.0",
    description="Passkey authentication for the den dashboard.",
    openapi_extra={
        "tags": [
            {
                "name": "passkeys",
                "description": "Passkey registration, login and management",
            },
            {
                "name": "auth",
                "description": "Current session and logout",
            },
            {
                "name": "devices",
                "description": "Session handoff to other origins and devices",
            },
            {
                "name": "health",
                "description": "Service health checks",
            },
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT",
                    "description": "Session token, normally carried in the den_session cookie. Include as: Authorization: Bearer <token>",
                }
            }
        },
    },
)


def _validation_message(errors: list[dict]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in _LOCATION_PREFIXES)
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


# Register routers
api.add_router("/auth", passkeys_router)
api.add_router("/auth", session_router)
api.add_router("/auth", devices_router)


@api.exception_handler(ValidationError)
def validation_error(request: HttpRequest, exc: ValidationError) -> HttpResponse:
    """Malformed request input is a 400 with a readable message, like service-level input errors."""
    return api.create_response(request, {"detail": _validation_message(exc.errors)}, status=400)


@api.exception_handler(DatabaseError)
def database_error(request: HttpRequest, exc: DatabaseError) -> HttpResponse:
    """Storage failures surface as a generic 500; details stay in the logs."""
    logger.exception("database_error", path=request.path)
    return api.create_response(request, {"detail": "Internal server error"}, status=500)


@api.get(
    "/health",
    response={200: dict, 503: ErrorResponse},
    tags=["health"],
    operation_id="healthCheck",
    summary="Health check",
)
def health_check(request: HttpRequest):
    """Health check endpoint; pings the database."""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        logger.warning("health_check_database_unavailable", error=str(e))
        raise HttpError(503, "Database unavailable") from None
    return {"status": "ok"}
