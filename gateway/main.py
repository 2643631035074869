"""
FastAPI application for the MotherDuck gateway.

Exposes table discovery, diagnostics and read-only SELECT queries against
a single attached MotherDuck catalog, with auto-generated OpenAPI
documentation at /docs.
"""

import asyncio
import json
import logging
import sys
import threading
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qsl

import duckdb
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from utils import log

from . import __version__
from .config import Settings, get_settings
from .data_access import MotherDuckClient
from .errors import GatewayError, BadRequest, MISSING_SQL, ONLY_SELECT
from .json_safe import make_json_safe
from .models import (
    RootResponse,
    HelloResponse,
    HealthResponse,
    TablesResponse,
    DiagnosticsResponse,
    QueryRequest,
    RowsResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

PROCESS_START = time.monotonic()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
}

UNAVAILABLE = {503: {"model": ErrorResponse}}


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _truthy(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in ("true", "1", "yes")


def _original_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url += f"?{request.url.query}"
    return url


async def _read_body(request: Request) -> dict:
    """Parse a JSON or urlencoded body; anything unparseable reads as empty."""
    raw = await request.body()
    if not raw:
        return {}
    content_type = request.headers.get("content-type", "")
    try:
        if "application/x-www-form-urlencoded" in content_type:
            return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
        if "json" in content_type:
            data = json.loads(raw)
            return data if isinstance(data, dict) else {}
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Unparseable request body: {e}")
    return {}


def validate_sql(sql) -> str:
    """
    Check a caller-supplied query before it reaches the engine.

    Only a textual prefix check: the trimmed, lower-cased text must start
    with "select". Multi-statement payloads are not rejected.
    """
    if not sql or not isinstance(sql, str):
        raise BadRequest(MISSING_SQL)
    if not sql.strip().lower().startswith("select"):
        raise BadRequest(ONLY_SELECT)
    return sql


def get_client(request: Request) -> MotherDuckClient:
    """Dependency returning the application's shared MotherDuck client."""
    return request.app.state.md


# ----------------------------------------------------------------
# Process-level failure logging
# ----------------------------------------------------------------

def _log_uncaught(exc_type, exc, tb):
    logger.critical("Uncaught exception", exc_info=(exc_type, exc, tb))


def _log_thread_exception(args):
    name = args.thread.name if args.thread else "unknown"
    logger.error(
        f"Uncaught exception in thread {name}",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


def _log_loop_exception(loop, context):
    exc = context.get("exception")
    logger.error(
        f"Unhandled async failure: {context.get('message', 'no message')}",
        exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
    )


def install_process_hooks():
    sys.excepthook = _log_uncaught
    threading.excepthook = _log_thread_exception
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)


# ----------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------

def create_app(cfg: Settings = None, client: MotherDuckClient = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        cfg: Settings (defaults to a fresh read of the environment)
        client: Pre-built MotherDuck client; when omitted one is created
            from ``cfg`` and connected immediately

    Returns:
        Configured FastAPI app with the client stored on ``app.state.md``
    """
    cfg = cfg or get_settings()
    log.setup_logging("gateway", level=cfg.LOG_LEVEL, log_file=cfg.LOG_FILE)

    if client is None:
        client = MotherDuckClient.from_settings(cfg)
        client.connect()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        install_process_hooks()
        log.ok(f"Server is running on port {cfg.PORT}")
        log.summary_table("Endpoints", [
            ("Local", f"http://localhost:{cfg.PORT}"),
            ("API Health", f"http://localhost:{cfg.PORT}/api/health"),
            ("Hello World", f"http://localhost:{cfg.PORT}/api/hello"),
        ])
        if client.is_configured:
            log.info(f"MotherDuck catalog: {client.database} AS {client.alias}")
        else:
            log.warn("MotherDuck endpoints disabled (no connection)")
        yield
        # The DuckDB handle is reclaimed on process exit.
        logger.info("Shutting down; HTTP listener closed")

    app = FastAPI(
        title=cfg.API_TITLE,
        description=cfg.API_DESCRIPTION,
        version=cfg.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.md = client

    # ----------------------------------------------------------------
    # Middleware
    # ----------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        client_host = request.client.host if request.client else "-"
        logger.info(
            f'{client_host} "{request.method} {_original_url(request)}" '
            f'{response.status_code} {elapsed_ms:.1f}ms "{request.headers.get("user-agent", "-")}"'
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers
    # ----------------------------------------------------------------

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unmatched path or method is reported as a missing route.
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Route not found",
                    "message": f"Cannot {request.method} {_original_url(request)}",
                    "timestamp": utc_timestamp(),
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    async def internal_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Something went wrong!",
                "message": "Internal server error" if cfg.is_production else str(exc),
                "timestamp": utc_timestamp(),
            },
        )

    # Registered per class so these run inside the middleware stack; the
    # Exception fallback runs in ServerErrorMiddleware, outside it.
    for exc_class in (duckdb.Error, ValueError, TypeError, LookupError, RuntimeError, OSError):
        app.add_exception_handler(exc_class, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # ----------------------------------------------------------------
    # Info Routes
    # ----------------------------------------------------------------

    @app.get("/", response_model=RootResponse, tags=["Health"])
    def root():
        """Service banner."""
        return {
            "message": "Welcome to Dex Server API",
            "status": "running",
            "timestamp": utc_timestamp(),
            "version": __version__,
        }

    @app.get("/api/hello", response_model=HelloResponse, tags=["Health"])
    def hello():
        return {
            "message": "Hello World!",
            "status": "success",
            "timestamp": utc_timestamp(),
        }

    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    def health():
        """Liveness check with process uptime in seconds."""
        return {
            "status": "healthy",
            "uptime": time.monotonic() - PROCESS_START,
            "timestamp": utc_timestamp(),
        }

    # ----------------------------------------------------------------
    # MotherDuck Routes
    # ----------------------------------------------------------------

    @app.get("/api/md/tables", response_model=TablesResponse, responses=UNAVAILABLE, tags=["MotherDuck"])
    def list_tables(
        schema_name: Optional[str] = Query(None, alias="schema", description="Only list tables in this schema"),
        include_views: Optional[str] = Query(None, alias="includeViews", description="'true' to include views"),
        md: MotherDuckClient = Depends(get_client),
    ):
        """
        List user tables visible on the connection.

        System schemas (information_schema, pg_catalog) are excluded.
        Ordered by catalog, schema, name.
        """
        md.require()
        return {"tables": md.list_tables(schema=schema_name, include_views=_truthy(include_views))}

    @app.get("/api/md/diagnostics", response_model=DiagnosticsResponse, responses=UNAVAILABLE, tags=["MotherDuck"])
    def diagnostics(md: MotherDuckClient = Depends(get_client)):
        """
        Report attached databases, the active database, its schemas and
        table count. Individual probe failures are listed under ``errors``.
        """
        return md.diagnostics()

    @app.get("/api/md/ping", responses={200: {"model": RowsResponse}, **UNAVAILABLE}, tags=["MotherDuck"])
    def ping(md: MotherDuckClient = Depends(get_client)):
        """Run a constant query to confirm the connection responds."""
        return {"rows": make_json_safe(md.ping())}

    @app.post(
        "/api/md/query",
        responses={200: {"model": RowsResponse}, 400: {"model": ErrorResponse}, **UNAVAILABLE},
        openapi_extra={
            "requestBody": {
                "required": True,
                "content": {"application/json": {"schema": QueryRequest.model_json_schema()}},
            }
        },
        tags=["MotherDuck"],
    )
    async def run_query(request: Request, md: MotherDuckClient = Depends(get_client)):
        """
        Execute a caller-supplied SELECT statement and return its rows.

        - **sql**: query text; must begin with SELECT
        """
        md.require()
        body = await _read_body(request)
        sql = validate_sql(body.get("sql"))
        rows = await run_in_threadpool(md.query, sql)
        return {"rows": make_json_safe(rows)}

    return app


app = create_app()


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn
    cfg = app.state.settings
    uvicorn.run(
        app,
        host=cfg.HOST,
        port=cfg.PORT,
        log_level=cfg.LOG_LEVEL.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    run()
