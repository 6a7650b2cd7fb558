import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront import config
from storefront.db import Base, make_engine, make_session_factory
from storefront.errors import ShopError
from storefront.log import configure_logging
from storefront.middleware.admin_auth import AdminAuthMiddleware
from storefront.notify.config_notify import notify_settings
from storefront.notify.whatsapp_notify import WhatsAppNotifier

# Import all models before create_all() so the metadata knows every table
import storefront.models  # noqa: F401

logger = logging.getLogger(__name__)


def create_app(
    session_factory=None,
    notifier=None,
    admin_token: str = config.ADMIN_API_TOKEN,
    env: str = config.ENV,
) -> FastAPI:
    """Build the API. Tests pass their own session factory and notifier.

    Outside the local environment an admin token is mandatory.
    """
    if not admin_token and (env or "").lower() != "local":
        raise RuntimeError(f"ADMIN_API_TOKEN must be set when ENV={env}")
    if not admin_token:
        logger.warning("ADMIN_API_TOKEN is empty: admin routes are open (ENV=local)")

    app = FastAPI(title=config.APP_NAME)

    if session_factory is None:
        engine = make_engine(config.DATABASE_URL)
        session_factory = make_session_factory(engine)

        @app.on_event("startup")
        def create_tables():
            Base.metadata.create_all(bind=engine)
            logger.info("database tables ready (%s)", config.ENV)

    app.state.session_factory = session_factory
    app.state.notifier = notifier if notifier is not None else WhatsAppNotifier.from_settings(notify_settings)

    app.add_middleware(AdminAuthMiddleware, token=admin_token)

    # ==== Errors ====
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": str(exc), "errorType": exc.kind},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"error": f"{where}: {msg}" if where else msg, "errorType": "ValidationError"},
        )

    # ==== Routers ====
    from storefront.routers import coupons as coupons_router
    from storefront.routers import orders as orders_router
    app.include_router(coupons_router.router)
    app.include_router(orders_router.router)

    # ==== Debug route ====
    @app.get("/__routes")
    def __routes():
        return [getattr(r, "path", str(r)) for r in app.routes]

    return app


configure_logging()
app = create_app()
