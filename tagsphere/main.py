import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.middleware import SlowAPIMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
import structlog

from .config import settings
from .db import Base, engine
from .errors import register_error_handlers
from .limits import limiter
from .logging import setup_logging, RequestIdMiddleware
from .middleware import SecurityHeadersMiddleware, BodySizeLimitMiddleware
from .auth.router import router as auth_router
from .routes.vehicle import router as vehicle_router
from .routes.scan import router as scan_router
from .routes.subscription import router as subscription_router
from .routes.notifications import router as notifications_router
from .routes.admin import router as admin_router
from .routes.health import router as health_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    settings.validate_startup()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(BodySizeLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    # Outermost, so rate limits and scan logs see the real client address
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.forwarded_allow_ips)
    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(vehicle_router)
    app.include_router(scan_router)
    app.include_router(subscription_router)
    app.include_router(notifications_router)
    app.include_router(admin_router)
    app.include_router(health_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        logger.info(
            "app_started",
            environment=settings.environment,
            firebase=settings.enable_firebase,
            razorpay=settings.enable_razorpay,
            notifications=settings.enable_notifications,
            calls=settings.enable_calls,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tagsphere.main:app", host=settings.host, port=settings.port, forwarded_allow_ips=settings.forwarded_allow_ips)
