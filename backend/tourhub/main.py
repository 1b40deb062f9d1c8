import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from tourhub.core.config import settings
from tourhub.core.errors import register_exception_handlers
from tourhub.core.middleware import FailedRequestAuditMiddleware
from tourhub.routers import (
    audit_logs,
    bookings,
    destinations,
    guides,
    moderation,
    notifications,
    users,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

OPENAPI_TAGS = [
    {"name": "Destinations", "description": "Publish destinations and move them through moderation."},
    {"name": "Guides", "description": "Guide applications and credential verification."},
    {"name": "Bookings", "description": "Book approved destinations and manage booking status."},
    {"name": "Users", "description": "Guide suspension, role changes and account status."},
    {"name": "Moderation", "description": "The moderation queue and per-item history."},
    {"name": "Audit Logs", "description": "Query the audit trail of mutating actions."},
    {"name": "Notifications", "description": "The caller's in-app notification inbox."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Tourism marketplace API. Guides publish destinations, staff moderate "
        "content and verify guides, travelers book approved destinations."
    ),
    openapi_tags=OPENAPI_TAGS,
)

register_exception_handlers(app)

app.add_middleware(FailedRequestAuditMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "Retry-After"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(destinations.router, prefix="/v1/destinations", tags=["Destinations"])
app.include_router(guides.router, prefix="/v1/guides", tags=["Guides"])
app.include_router(bookings.router, prefix="/v1/bookings", tags=["Bookings"])
app.include_router(users.router, prefix="/v1/users", tags=["Users"])
app.include_router(moderation.router, prefix="/v1/moderation", tags=["Moderation"])
app.include_router(audit_logs.router, prefix="/v1/audit_logs", tags=["Audit Logs"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["Notifications"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
