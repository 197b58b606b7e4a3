"""Early rejection of malformed Authorization headers.

Session checks happen once, in `get_current_user`; this layer never touches
the database.
"""
from starlette.requests import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


class JWTMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        auth_header = request.headers.get("authorization")
        if auth_header:
            scheme, _, token = auth_header.partition(" ")
            if scheme.lower() != "bearer" or not token.strip():
                return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        return await call_next(request)
