# backend/portal_guard/main.py
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

# rate limiting
from slowapi.errors import RateLimitExceeded as SlowAPIRateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from portal_guard.core.limiter import client_ip, limiter
from portal_guard.core.settings import get_settings
from portal_guard.messages import message_for
from portal_guard.security.defense import BotDefense
from portal_guard.security.errors import IPBlocked, RateLimitExceeded, ShieldError
from portal_guard.security.logger import security_logger as logger
from portal_guard.security.maintenance import Sweeper
from portal_guard.security.risk import risk_level

# ---- Allowed origins (env-overridable) ----
DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def _load_allowed_origins() -> List[str]:
    """
    Optionally override via:
      ALLOWED_ORIGINS="https://portal.example.gov"
      (comma-separated list if multiple)
    """
    return get_settings().allowed_origins or DEFAULT_ALLOWED_ORIGINS


ALLOWED_ORIGINS = _load_allowed_origins()

# ---- Default security headers ----
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "frame-ancestors 'none'; "
        "object-src 'none'; "
        "base-uri 'self'; "
        "form-action 'self'"
    ),
}
# NOTE: HSTS only takes effect when served over HTTPS (enable at your reverse proxy in prod)
STRICT_TRANSPORT_SECURITY = "max-age=31536000; includeSubDomains"

# Paths that skip the IP gate
GATE_EXEMPT_PATHS = {"/health"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = Sweeper(app.state.defense)
    await sweeper.start()
    logger.info("Bot-defense sweeper started")
    yield
    await sweeper.stop()


app = FastAPI(title="Citizen Portal Bot Defense", lifespan=lifespan)
app.state.defense = BotDefense(get_settings())

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "x-requested-with", "accept-language"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


def render_error(request: Request, exc: ShieldError) -> JSONResponse:
    content = {
        "error": exc.code,
        "message": message_for(exc.code, request.headers.get("accept-language")),
    }
    content.update(exc.payload())
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers() or None)


@app.exception_handler(ShieldError)
def _shield_error_handler(request: Request, exc: ShieldError) -> JSONResponse:
    return render_error(request, exc)


@app.exception_handler(SlowAPIRateLimitExceeded)
def _rate_limit_handler(request: Request, exc: SlowAPIRateLimitExceeded) -> JSONResponse:
    profile = app.state.defense.report_rate_limit(client_ip(request))
    retry_after = 0
    limit = getattr(exc, "limit", None)
    if limit is not None and getattr(limit, "limit", None) is not None:
        retry_after = limit.limit.get_expiry()
    response = render_error(request, RateLimitExceeded(retry_after=retry_after, risk_level=risk_level(profile.risk_score)))
    for header, value in (getattr(exc, "headers", {}) or {}).items():
        response.headers.setdefault(header, value)
    return response


# ---- HTTP Hardening Middleware ----
@app.middleware("http")
async def check_http_hardening(request: Request, call_next):
    # Only GET/POST/OPTIONS are served; refuse the rest up front.
    if request.method in ["PUT", "DELETE", "PATCH"]:
        return JSONResponse(
            status_code=405,
            content={"detail": "Method Not Allowed"},
            headers={"Allow": "GET, POST, OPTIONS"},
        )

    # POST bodies must be JSON.
    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith("application/json"):
            return JSONResponse(
                status_code=415,
                content={"detail": "Unsupported Media Type. Must be application/json"},
            )

    response: Response = await call_next(request)
    return response


# ---- IP gate: blocked clients never reach rate limiting or routing ----
@app.middleware("http")
async def ip_gate(request: Request, call_next):
    if request.method == "OPTIONS" or request.url.path in GATE_EXEMPT_PATHS:
        return await call_next(request)
    defense: BotDefense = request.app.state.defense
    try:
        # the profile lock is shared with sync routes, so keep it off the event loop
        await run_in_threadpool(defense.enforce_gate, client_ip(request), request.headers.get("user-agent"))
    except IPBlocked as exc:
        return render_error(request, exc)
    return await call_next(request)


# ---- Security headers middleware ----
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    # HSTS (effective only when behind HTTPS)
    response.headers.setdefault("Strict-Transport-Security", STRICT_TRANSPORT_SECURITY)
    return response


# ---- Health endpoint (used by tests and curl) ----
@app.get("/health")
def health():
    return {"ok": True}


# ---- Routers ----
from portal_guard.routers import admin, captcha, forms, security  # noqa: E402

app.include_router(captcha.router)
app.include_router(security.router)
app.include_router(forms.router)
app.include_router(admin.router)
