# main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
import routes
from config.cache import close_redis, get_redis
from config.providers import close_providers, init_providers
from config.settings import settings
from config.vector_store import close_vector_store, init_vector_store
from controller.controller_dependencies import real_ip
from util.enums import Color, Environment, ErrorCode
from util.errors import AppError
from util.logger import init_logger
import logging

logger = logging.getLogger(__name__)

# Body field -> error code for schema-level failures (wrong types, bad JSON values)
_FIELD_CODES = {
    "doc_id": ErrorCode.INVALID_DOC_ID,
    "pdf_base64": ErrorCode.INVALID_PDF_DATA,
    "overwrite": ErrorCode.VALIDATION_ERROR,
    "chunk_size": ErrorCode.INVALID_CHUNK_CONFIG,
    "chunk_overlap": ErrorCode.INVALID_CHUNK_CONFIG,
    "question": ErrorCode.INVALID_QUESTION,
    "top_k": ErrorCode.INVALID_TOP_K,
    "min_score": ErrorCode.INVALID_MIN_SCORE,
}


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    init_logger()
    print(f"{Color.GREEN}Initializing...{Color.RESET}")
    try:
        redis = await get_redis()
        await FastAPILimiter.init(redis, identifier=real_ip)
        await init_vector_store()
        init_providers()
        print(f"{Color.BLUE}Server Started{Color.RESET}")
    except Exception as e:
        logger.critical("startup.failed err=%s", e)
        await _shutdown()
        raise

    try:
        yield
    finally:
        await _shutdown()
        print(f"{Color.RED}Server Shutdown{Color.RESET}")


async def _shutdown() -> None:
    for name, closer in (
        ("providers", close_providers),
        ("vectorstore", close_vector_store),
        ("redis", close_redis),
    ):
        try:
            await closer()
        except Exception as e:
            logger.error("shutdown.%s.error err=%s", name, e)


app: FastAPI = FastAPI(title="RAG Pipeline API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials="*" not in settings.allowed_origins,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


def _error(code: ErrorCode, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=code.value.http_status,
        content={"success": False, "error": message, "code": code.value.code},
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(x) for x in first.get("loc", ())]
    field = loc[1] if len(loc) > 1 and loc[0] == "body" else ""
    code = _FIELD_CODES.get(field, ErrorCode.VALIDATION_ERROR)
    where = field or ".".join(loc) or "body"
    return _error(code, f"Validation failed: {where}: {first.get('msg', 'invalid value')}")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error(ErrorCode.NOT_FOUND, "Endpoint not found")
    if exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return _error(
            ErrorCode.RATE_LIMITED,
            f"Too many requests. Try again in {settings.RATE_LIMIT_SECONDS}s.",
            headers={"Retry-After": str(settings.RATE_LIMIT_SECONDS)},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "code": "HTTP_ERROR"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.exception("server.error path=%s", request.url.path)
    return _error(ErrorCode.INTERNAL_ERROR, "Internal server error")


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=reload)
