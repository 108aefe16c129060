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
from app.middlewares.security_headers import SecurityHeadersMiddleware

# Headers the dashboard reads off responses (request tracing, report downloads).
EXPOSED_HEADERS = ["X-Request-ID", "Content-Disposition"]


def _install_middleware(app: FastAPI) -> None:
    # Starlette runs the last-added middleware first: CORS, then headers, then context.
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=EXPOSED_HEADERS,
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="FX Pipeline Backend",
        version=APP_VERSION,
        docs_url=None if settings.environment == "production" else "/docs",
    )
    app.state.limiter = limiter
    register_exception_handlers(app)
    register_response_envelope(app)
    _install_middleware(app)
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
