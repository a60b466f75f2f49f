# rest_client/executor.py
"""
Outbound request executor.

Performs exactly one HTTP call per execute() and normalizes the outcome:
  - ExecutionSuccess: any response from the remote, including 4xx/5xx
  - ExecutionFailure: the call never produced a response (DNS, refused, TLS, timeout)

Response bodies are classified once by declared content type into
StructuredBody (decoded JSON) or RawBody (text). A body that declares JSON
but fails to decode is returned as RawBody.

Configuration (env vars):
  REQUEST_TIMEOUT_SECONDS=30
"""

import os
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx

USER_AGENT = "REST-Client/1.0"
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

BODY_METHODS = ("POST", "PUT", "PATCH")

# status recorded for attempts that never reached the remote
FAILURE_STATUS = 0


@dataclass(frozen=True)
class StructuredBody:
    value: Any

    def as_text(self) -> str:
        return json.dumps(self.value, separators=(",", ":"), ensure_ascii=False)

    def as_payload(self) -> Any:
        return self.value


@dataclass(frozen=True)
class RawBody:
    text: str

    def as_text(self) -> str:
        return self.text

    def as_payload(self) -> Any:
        return self.text


ResponseBody = Union[StructuredBody, RawBody]


@dataclass(frozen=True)
class ExecutionSuccess:
    body: ResponseBody
    status: int
    headers: Dict[str, str]
    response_time: int
    ok = True


@dataclass(frozen=True)
class ExecutionFailure:
    message: str
    response_time: int
    timed_out: bool = False
    ok = False

    @property
    def status(self) -> int:
        return FAILURE_STATUS


ExecutionResult = Union[ExecutionSuccess, ExecutionFailure]


def is_json_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def classify_body(response: httpx.Response) -> ResponseBody:
    if is_json_content_type(response.headers.get("content-type")):
        try:
            return StructuredBody(response.json())
        except ValueError:
            pass
    return RawBody(response.text)


def build_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    merged = {k: v for k, v in (headers or {}).items() if k.lower() != "user-agent"}
    merged["User-Agent"] = USER_AGENT
    return merged


def _elapsed_ms(start: float) -> int:
    return max(0, int(round((time.perf_counter() - start) * 1000)))


def _failure_message(exc: Exception) -> str:
    detail = str(exc) or exc.__class__.__name__
    return f"Request failed: {detail}"


@dataclass
class Executor:
    timeout: float = REQUEST_TIMEOUT_SECONDS
    follow_redirects: bool = True
    # tests inject httpx.MockTransport here
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    def execute(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
    ) -> ExecutionResult:
        content = body if body and method.upper() in BODY_METHODS else None
        start = time.perf_counter()
        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                transport=self.transport,
            ) as client:
                response = client.request(method, url, headers=build_headers(headers), content=content)
                result_body = classify_body(response)
                response_time = _elapsed_ms(start)
        except httpx.TimeoutException as e:
            return ExecutionFailure(_failure_message(e), _elapsed_ms(start), timed_out=True)
        # ValueError: the request could not be built, e.g. a non-ASCII header value
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            return ExecutionFailure(_failure_message(e), _elapsed_ms(start))

        return ExecutionSuccess(
            body=result_body,
            status=response.status_code,
            headers=dict(response.headers.items()),
            response_time=response_time,
        )
