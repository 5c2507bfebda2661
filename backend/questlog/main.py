from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.utils import get_openapi
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
import time

from questlog.core.config import settings
from questlog.core.errors import QuestLogError
from questlog.core.logging import setup_logging, get_logger, clear_context
from questlog.core.rate_limit import limiter
from questlog.infrastructure.database.session import engine
from questlog.infrastructure.database import models  # noqa: F401
from questlog.infrastructure.database.session import Base
from questlog.api.routes import users, tasks, leaderboard

# ──── Init ────────────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger(__name__)
Base.metadata.create_all(bind=engine)

# ──── App ─────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="QuestLog API",
    version=settings.APP_VERSION,
    description="""
## QuestLog: turn your to-do list into a quest log

Create tasks, complete them to earn XP and levels, and climb the leaderboard.

Every `/api` route expects `Authorization: Bearer <token>` where the token is the
one issued by Google sign-in. Click **Authorize** and paste **only the token**.
    """,
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
    },
)

# ──── Middleware ──────────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    clear_context()
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.info(
        "HTTP request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=duration
    )
    return response


# ──── Error responses: always {"error": message} ──────────────────────────────
@app.exception_handler(QuestLogError)
async def questlog_error_handler(request: Request, exc: QuestLogError):
    logger.warning("Request failed", status=exc.status_code, error=exc.message, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    # ── Declare the bearerAuth scheme ─────────────────────────────────────────
    schema.setdefault("components", {})
    schema["components"]["securitySchemes"] = {
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "description": "Google sign-in token (without 'Bearer ')",
        }
    }

    # ── Everything under /api needs the token, system routes do not
    for path, path_data in schema["paths"].items():
        for method, operation in path_data.items():
            operation["security"] = [{"bearerAuth": []}] if path.startswith("/api/") else []

    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = custom_openapi


# ──── Routers ─────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(leaderboard.router, prefix="/api")


# ──── Health ──────────────────────────────────────────────────────────────────
@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}


@app.get("/", tags=["System"])
def root():
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "docs": "/docs",
        "redoc": "/redoc",
        "version": settings.APP_VERSION,
    }
