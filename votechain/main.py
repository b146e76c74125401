# main.py
import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from votechain.config import Settings, get_settings
from votechain.dependencies import get_store
from votechain.ledger import utc_timestamp
from votechain.ratelimit import RateLimitMiddleware, SlidingWindowLimiter
from votechain.routes.election_routes import router as election_router
from votechain.routes.vote_routes import vote_router
from votechain.schemas import AdminLogin, HealthOut, TokenOut
from votechain.security import AdminGuard
from votechain.session import SessionStore

logger = logging.getLogger(__name__)

# Sent on every response, including rate-limit rejections
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}
# Swagger UI and ReDoc pull scripts from a CDN
DOCS_PATHS = ("/docs", "/docs/oauth2-redirect", "/redoc")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="VoteChain - Tamper-Evident Voting API")

    # Per-app state; a new election replaces the session held by the store
    app.state.settings = settings
    app.state.sessions = SessionStore()
    app.state.admin_guard = AdminGuard(
        settings.admin_key,
        settings.secret_key,
        algorithm=settings.algorithm,
        expire_minutes=settings.access_token_expire_minutes,
    )
    app.state.vote_limiter = SlidingWindowLimiter(settings.vote_rate_limit, settings.vote_rate_window)

    app.add_middleware(
        RateLimitMiddleware,
        limiter=SlidingWindowLimiter(settings.general_rate_limit, settings.general_rate_window),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Admin-Key"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            if header == "Content-Security-Policy" and request.url.path in DOCS_PATHS:
                continue
            response.headers.setdefault(header, value)
        return response

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.include_router(election_router)
    app.include_router(vote_router)

    # --- General Endpoints ---

    @app.get("/", tags=["Root"])
    def read_root():
        return {"message": "Welcome to the VoteChain API"}

    @app.get("/health", response_model=HealthOut, tags=["Root"])
    def health_check(store: SessionStore = Depends(get_store)):
        session = store.get()
        if session is None:
            state = "Uninitialized"
        else:
            state = "Valid" if session.validate().valid else "Invalid"
        return HealthOut(status="OK", timestamp=utc_timestamp(), blockchain=state)

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    # --- Admin Endpoints ---

    @app.post("/admin/login", response_model=TokenOut, tags=["Admin"])
    def admin_login(login: AdminLogin, request: Request):
        guard: AdminGuard = request.app.state.admin_guard
        if not guard.verify_key(login.admin_key):
            raise HTTPException(status_code=401, detail="Unauthorized access")
        return TokenOut(access_token=guard.create_access_token())

    logger.info("VoteChain app ready (admin %s)", "enabled" if app.state.admin_guard.enabled else "disabled")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("votechain.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
