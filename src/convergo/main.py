"""ConVergo server."""

import logging
from pathlib import Path
from uuid import uuid4

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load .env from the project root (src/convergo/main.py -> .env)
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)

from convergo.api import router  # noqa: E402
from convergo.config import get_settings  # noqa: E402
from convergo.errors import ConvergoError, ErrorKind  # noqa: E402

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("convergo")

app = FastAPI(title="ConVergo", version="0.1.0")

# Allow the widget and dashboard to connect
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    """Give every request a fresh correlation id."""
    request.state.request_id = uuid4().hex
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid4().hex


@app.exception_handler(ConvergoError)
async def convergo_error_handler(request: Request, exc: ConvergoError) -> JSONResponse:
    request_id = _request_id(request)
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "[%s %s][%s] %s: %s", request.method, request.url.path, request_id, exc.kind.value, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(request_id))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    error = ConvergoError(ErrorKind.INVALID_REQUEST, "Invalid request.", {"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error.to_dict(_request_id(request)))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = _request_id(request)
    logger.exception("[%s %s][%s] unhandled error", request.method, request.url.path, request_id)
    error = ConvergoError(ErrorKind.INTERNAL_ERROR, "Server error.")
    return JSONResponse(status_code=error.status_code, content=error.to_dict(request_id))


app.include_router(router)
