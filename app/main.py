from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1 import api_router
from app.core.errors import register_exception_handlers
from app.core.health import APP_VERSION
from app.core.limiter import limiter
from app.core.logging import configure_logging
from app.core.response_envelope import register_response_envelope
from app.core.settings import settings
from app.events import register_event_handlers
from app.middlewares.request_context import RequestContextMiddleware

OPENAPI_TAGS = [
    {"name": "profile", "description": "Financial profiles and prequalification"},
    {"name": "plans", "description": "Plan catalog and eligibility evaluation"},
    {"name": "applications", "description": "Application lifecycle, routing and plan binding"},
    {"name": "loans", "description": "Loan ledger, installments and payment status"},
    {"name": "staff-assignments", "description": "Staff to prospect assignments"},
    {"name": "health", "description": "Liveness and readiness probes"},
]


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Donum Backend",
        description="Charitable-financing loan lifecycle: qualification through repayment.",
        version=APP_VERSION,
        openapi_tags=OPENAPI_TAGS,
        docs_url=None if settings.environment == "production" else "/docs",
        redoc_url=None,
    )
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    # Outside the rate limiter so throttled responses still carry a request id.
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
