# rest_client/app.py
import time
from contextlib import asynccontextmanager

# Load .env BEFORE any rest_client imports (they read env vars at import time)
from dotenv import load_dotenv
load_dotenv(override=True)

from fastapi import FastAPI, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from rest_client import monitoring
from rest_client import db as dbmod
from rest_client.schemas import ExecuteRequest, HistoryQuery
from rest_client.service import RequestService, InvalidRequest

HISTORY_CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=30"


@asynccontextmanager
async def lifespan(app: FastAPI):
    dbmod.init_db()
    yield
    dbmod.dispose()


app = FastAPI(title="REST Client API", lifespan=lifespan)

# instantiate service once
service = RequestService()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


# ---------------------------------------------------------------------------
# Metrics middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    endpoint = request.url.path
    method = request.method
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    except Exception:
        monitoring.logger.exception("Unhandled exception in request", extra={"path": endpoint})
        raise
    finally:
        monitoring.observe_request(start, endpoint, method, status)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Invalid request", details=_jsonable_errors(exc.errors()))


def _jsonable_errors(errors):
    return [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")}
        for e in errors
    ]


def history_query(request: Request) -> HistoryQuery:
    try:
        return HistoryQuery.model_validate(dict(request.query_params))
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.post("/api/request")
def execute_request(req: ExecuteRequest):
    """
    POST /api/request
    Body: { "method": "GET", "url": "...", "headers": {...}, "body": "..." }
    """
    monitoring.logger.info("Received /api/request", extra={"method": req.method, "url": req.url})
    try:
        status_code, payload = service.handle_execute(req)
    except InvalidRequest as e:
        return _error(400, str(e))
    except Exception:
        monitoring.logger.exception("Unexpected error in /api/request handler")
        return _error(500, "Internal server error")
    return JSONResponse(status_code=status_code, content=payload)


@app.get("/api/history")
def get_history(query: HistoryQuery = Depends(history_query)):
    """
    GET /api/history?page=1&limit=10&method=GET&status=200&search=foo
    Newest first; limit is capped at 50.
    """
    try:
        page = service.list_history(query)
    except InvalidRequest as e:
        return _error(400, str(e))
    except SQLAlchemyError:
        monitoring.logger.exception("History fetch error")
        return _error(500, "Failed to fetch history")
    return JSONResponse(
        status_code=200,
        content=page,
        headers={"Cache-Control": HISTORY_CACHE_CONTROL},
    )


@app.delete("/api/history")
def clear_history():
    try:
        removed = service.clear_history()
    except SQLAlchemyError:
        monitoring.logger.exception("History clear error")
        return _error(500, "Failed to clear history")
    monitoring.logger.info("History cleared", extra={"removed": removed})
    return {"success": True}


@app.post("/api/setup")
def create_schema():
    try:
        dbmod.create_schema()
    except SQLAlchemyError as e:
        monitoring.logger.exception("Schema creation error")
        return _error(500, "Failed to create schema", details=str(e))
    return {"success": True, "message": "Database schema created successfully"}


@app.get("/api/setup")
def show_schema():
    try:
        sql = dbmod.schema_sql()
    except SQLAlchemyError as e:
        monitoring.logger.exception("Schema check error")
        return _error(500, "Failed to check schema", details=str(e))
    return {"success": True, "sql": sql}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    if not monitoring.PROMETHEUS_ENABLED:
        return PlainTextResponse("Prometheus disabled", status_code=404)
    payload, content_type = monitoring.prometheus_metrics_response()
    return Response(content=payload, media_type=content_type)
