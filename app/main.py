import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Load environment variables from .env explicitly from project root
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env", override=False)

from app.db.postgres import Base, engine  # noqa: E402
from app.db import models as db_models  # noqa: E402,F401  # ensure models are registered
from app.api.auth import router as auth_router  # noqa: E402
from app.api.boats import router as boats_router  # noqa: E402
from app.api.journeys import router as journeys_router  # noqa: E402
from app.api.legs import router as legs_router  # noqa: E402
from app.api.registrations import router as registrations_router  # noqa: E402
from app.api.notifications import router as notifications_router  # noqa: E402
from app.api.ai import router as ai_router  # noqa: E402
from app.api.assistant import router as assistant_router  # noqa: E402
from app.api.feedback import router as feedback_router  # noqa: E402
from app.api.admin_feedback import router as admin_feedback_router  # noqa: E402
from app.api.consents import router as consents_router  # noqa: E402
from app.core.config import get_settings  # noqa: E402
from app.core.rate_limit import ai_limiter, rate_limit_payload  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

AI_PATH_PREFIXES = ("/ai/", "/assistant/")

app = FastAPI(title="SailMatch API")

# CORS configuration to allow the web frontend to call this API
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

# Cannot use allow_origins=["*"] together with allow_credentials=True
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# Explicit OPTIONS handler for preflight requests
@app.options("/{full_path:path}")
async def options_handler(full_path: str):
    """Handle OPTIONS preflight requests"""
    return JSONResponse(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS, PATCH",
            "Access-Control-Allow-Headers": "*",
            "Access-Control-Allow-Credentials": "true",
        },
    )


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Rate limiting for the LLM-backed endpoints"""
    path = str(request.url.path)
    if request.method == "OPTIONS" or not path.startswith(AI_PATH_PREFIXES):
        return await call_next(request)

    # Key by bearer token when present, else client IP
    auth_header = request.headers.get("authorization", "")
    client_ip = request.client.host if request.client else "unknown"
    client_key = f"token_{auth_header[-32:]}" if auth_header else f"ip_{client_ip}"

    is_allowed, retry_after = ai_limiter.check_rate_limit(client_key)
    if not is_allowed:
        logger.warning("AI rate limit hit for %s on %s", client_key[:12], path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=rate_limit_payload(ai_limiter, retry_after),
            headers={"Retry-After": str(retry_after)},
        )
    response = await call_next(request)
    response.headers["X-RateLimit-Remaining"] = str(ai_limiter.get_remaining_requests(client_key))
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Custom handler for validation errors - provides clearer error messages"""
    errors = exc.errors()
    error_messages = []

    for error in errors:
        field = " -> ".join(str(loc) for loc in error.get("loc", []))
        message = error.get("msg", "Validation error")
        error_messages.append(f"{field}: {message}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "; ".join(error_messages),
            "errors": jsonable_encoder(errors),
        },
    )


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(boats_router)
app.include_router(journeys_router)
app.include_router(legs_router)
app.include_router(registrations_router)
app.include_router(notifications_router)
app.include_router(ai_router)
app.include_router(assistant_router)
app.include_router(feedback_router)
app.include_router(admin_feedback_router)  # protected by get_current_admin
app.include_router(consents_router)


@app.on_event("startup")
def on_startup() -> None:
    """
    Initialize database schema.

    Base.metadata.create_all is idempotent: it will create tables only if they
    do not exist yet, and will not drop or modify existing ones.
    """
    Base.metadata.create_all(bind=engine)

    if get_settings().enable_scheduler:
        from app.services.notification.scheduler import start_default_scheduler

        app.state.scheduler = start_default_scheduler()


@app.on_event("shutdown")
def on_shutdown() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
