# rest_client/service.py
from typing import Dict, Any, Optional, Tuple

from rest_client import db as dbmod
from rest_client import monitoring
from rest_client.cache import HistoryCache
from rest_client.executor import Executor, ExecutionFailure, ExecutionResult
from rest_client.filters import HistoryFilter
from rest_client.schemas import ExecuteRequest, ExecuteResponse, HistoryQuery, HistoryPage

E_URL_REQUIRED = "URL is required"


class InvalidRequest(ValueError):
    """Caller-input problem; reported before anything is executed or stored."""


class RequestService:
    """Runs requests through the executor and keeps the history log."""

    def __init__(self, executor: Optional[Executor] = None, cache: Optional[HistoryCache] = None):
        self.executor = executor or Executor()
        self.cache = cache or HistoryCache()

    def _persist(self, req: ExecuteRequest, result: ExecutionResult) -> Optional[int]:
        """Record the attempt (best-effort); never raises."""
        if isinstance(result, ExecutionFailure):
            response_text = result.message
        else:
            response_text = result.body.as_text()
        try:
            return dbmod.insert_request_record({
                "method": req.method,
                "url": req.url,
                "headers": req.headers,
                "body": req.body,
                "response": response_text,
                "status": result.status,
                "response_time": result.response_time,
            })
        except Exception:
            monitoring.logger.exception("Unexpected error saving request history", extra={"url": req.url})
            monitoring.inc_history_write_failure()
            return None
        finally:
            self.cache.invalidate()

    def handle_execute(self, req: ExecuteRequest) -> Tuple[int, Dict[str, Any]]:
        """Execute the request, log it, and return (http_status, payload)."""
        if not req.url:
            raise InvalidRequest(E_URL_REQUIRED)

        result = self.executor.execute(req.method, req.url, req.headers, req.body)
        self._persist(req, result)

        if isinstance(result, ExecutionFailure):
            monitoring.logger.warning(
                "Outbound request failed",
                extra={"method": req.method, "url": req.url, "timed_out": result.timed_out},
            )
            monitoring.observe_execution(req.method, "timeout" if result.timed_out else "failure", result.response_time)
            return 500, {"error": result.message, "responseTime": result.response_time}

        monitoring.observe_execution(req.method, "success", result.response_time)
        resp = ExecuteResponse(
            data=result.body.as_payload(),
            status=result.status,
            headers=result.headers,
            responseTime=result.response_time,
        )
        return 200, resp.model_dump()

    def list_history(self, query: HistoryQuery, status_mode: Optional[str] = None) -> Dict[str, Any]:
        page, limit = dbmod.clamp_paging(query.page, query.limit)
        try:
            history_filter = HistoryFilter.from_params(
                method=query.method, status=query.status, search=query.search, status_mode=status_mode
            )
        except ValueError as e:
            raise InvalidRequest(str(e)) from e

        key = (page, limit) + history_filter.cache_key()
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        generation = self.cache.generation
        raw = dbmod.query_request_records(page=page, limit=limit, history_filter=history_filter)
        result = HistoryPage.model_validate(raw).model_dump()
        self.cache.set(key, result, generation)
        return result

    def clear_history(self) -> int:
        try:
            return dbmod.clear_request_records()
        finally:
            self.cache.invalidate()
