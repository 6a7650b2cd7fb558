import hmac

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from fastapi import Request

# admin console API; everything else is public storefront
ADMIN_PREFIXES = ("/api/orders", "/api/coupons")

# storefront calls that live under an admin prefix
PUBLIC_ROUTES = {("POST", "/api/orders")}


def is_public(method: str, path: str) -> bool:
    return (method.upper(), path.rstrip("/") or "/") in PUBLIC_ROUTES


class AdminAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, token: str = ""):
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if self.token and path.startswith(ADMIN_PREFIXES) and not is_public(request.method, path):
            given = request.headers.get("x-admin-token") or ""
            if not hmac.compare_digest(given.encode(), self.token.encode()):
                return JSONResponse(
                    {"error": "Unauthorized", "errorType": "Unauthorized"},
                    status_code=401,
                )
        return await call_next(request)
