# rest_client/db.py
"""
Audit store for executed requests.

The engine and session factory are process-wide and created lazily on first
use. Inserts are best-effort: storage failures are logged and swallowed so the
caller still gets its execution result. Query and clear failures propagate as
SQLAlchemyError for the API layer to turn into an error payload.
"""
import os
import math
import datetime
import threading
from typing import Optional, Dict, Any, List

from sqlalchemy import create_engine, func, select, delete
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.schema import CreateTable, CreateIndex
from sqlalchemy.exc import SQLAlchemyError

from rest_client import monitoring
from rest_client.filters import HistoryFilter, build_conditions

logger = monitoring.logger

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rest_client.db")
AUTO_CREATE_SCHEMA = os.getenv("AUTO_CREATE_SCHEMA", "true").lower() in ("1", "true", "yes")

# Pool bounds for server databases (SQLite keeps SQLAlchemy's default pool)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "2"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "8"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "1800"))

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 10
RESPONSE_PREVIEW_CHARS = 1000
TRUNCATION_MARKER = "..."

Base = declarative_base()

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None
_url = DATABASE_URL
_lock = threading.Lock()


def _make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
    )


def get_engine() -> Engine:
    global _engine, _SessionLocal
    if _engine is None:
        with _lock:
            if _engine is None:
                engine = _make_engine(_url)
                _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
                _engine = engine
    return _engine


def get_session():
    get_engine()
    return _SessionLocal()


def reconfigure(url: str):
    """Point the store at a different database (for tests)."""
    global _url
    dispose()
    with _lock:
        _url = url


def dispose():
    """Close pooled connections and drop the engine; the next use recreates it."""
    global _engine, _SessionLocal
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _SessionLocal = None


def _load_models():
    # models import Base from here, so they are loaded lazily
    import rest_client.models as models
    return models


def create_schema():
    """Create the history table and its indexes if they don't exist."""
    _load_models()
    Base.metadata.create_all(bind=get_engine())


def init_db():
    if not AUTO_CREATE_SCHEMA:
        logger.info("Automatic schema creation disabled")
        return
    try:
        create_schema()
    except SQLAlchemyError:
        # don't crash the app at startup; queries will report the problem
        logger.exception("DB init failed")


def schema_sql() -> str:
    """Return the DDL for the history table as it would be emitted on this database."""
    _load_models()
    dialect = get_engine().dialect
    statements = []
    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")
    return "\n\n".join(statements)


def insert_request_record(record: Dict[str, Any]) -> Optional[int]:
    """
    Save one executed request. record should include:
      - method (str), url (str)
      - headers (dict) optional; defaults to {}
      - body (str) optional; None is stored as NULL
      - response (str) textual response
      - status (int), response_time (int ms)
    Returns the DB id or None on error.
    """
    models = _load_models()
    try:
        db = get_session()
    except SQLAlchemyError:
        logger.exception("DB connect error while saving request history")
        monitoring.inc_history_write_failure()
        return None
    try:
        rr = models.RequestRecord(
            method=record["method"],
            url=record["url"],
            headers=dict(record.get("headers") or {}),
            body=record.get("body"),
            response=record.get("response") or "",
            status=int(record["status"]),
            response_time=int(record["response_time"]),
            created_at=datetime.datetime.now(datetime.timezone.utc),
        )
        db.add(rr)
        db.commit()
        return rr.id
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to save request history", extra={"url": record.get("url")})
        monitoring.inc_history_write_failure()
        return None
    finally:
        db.close()


def _truncate(text: str) -> str:
    if text is not None and len(text) > RESPONSE_PREVIEW_CHARS:
        return text[:RESPONSE_PREVIEW_CHARS] + TRUNCATION_MARKER
    return text


def _isoformat(ts: datetime.datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    # SQLite hands back naive values; they were written as UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    ts = ts.astimezone(datetime.timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_dict(rr) -> Dict[str, Any]:
    return {
        "id": rr.id,
        "method": rr.method,
        "url": rr.url,
        "headers": rr.headers or {},
        "body": rr.body,
        "response": _truncate(rr.response),
        "status": rr.status,
        "responseTime": rr.response_time,
        "createdAt": _isoformat(rr.created_at),
    }


def clamp_paging(page: Optional[int], limit: Optional[int]) -> tuple:
    page = 1 if page is None else max(1, page)
    limit = DEFAULT_PAGE_SIZE if limit is None else min(max(1, limit), MAX_PAGE_SIZE)
    return page, limit


def query_request_records(
    page: Optional[int] = 1,
    limit: Optional[int] = DEFAULT_PAGE_SIZE,
    history_filter: Optional[HistoryFilter] = None,
) -> Dict[str, Any]:
    """
    Return one page of history, newest first:
    {
      "requests": [ {...}, ... ],
      "totalPages": int,
      "currentPage": int,
      "total": int,
      "hasMore": bool
    }
    """
    models = _load_models()
    RequestRecord = models.RequestRecord
    page, limit = clamp_paging(page, limit)
    conditions = build_conditions(RequestRecord, history_filter or HistoryFilter())
    offset = (page - 1) * limit

    db = get_session()
    try:
        total = db.scalar(select(func.count(RequestRecord.id)).where(*conditions))
        rows = db.scalars(
            select(RequestRecord)
            .where(*conditions)
            .order_by(RequestRecord.created_at.desc(), RequestRecord.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        requests: List[Dict[str, Any]] = [_to_dict(rr) for rr in rows]
    finally:
        db.close()

    total_pages = math.ceil(total / limit)
    return {
        "requests": requests,
        "totalPages": total_pages,
        "currentPage": page,
        "total": total,
        "hasMore": page < total_pages,
    }


def clear_request_records() -> int:
    """Delete every history record. Returns the number of rows removed."""
    models = _load_models()
    db = get_session()
    try:
        result = db.execute(delete(models.RequestRecord))
        db.commit()
        return result.rowcount
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()
