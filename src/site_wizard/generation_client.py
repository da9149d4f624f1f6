from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Iterable, Iterator, Mapping

import httpx
from pydantic import ValidationError

from .defaults import DEFAULT_RETRY_POLICY, GENERATION_TIMEOUT_SECONDS, RetryPolicy
from .errors import GenerationCancelledError, GenerationError, GenerationIncompleteError
from .models.generation import GenerationRequest, ProgressEvent

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "/api/website-builder/generate"
RESULT_KEYS = ("website", "data", "result")


class GenerationHandle:
    """Cancellation handle for one in-flight generation stream."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._response: httpx.Response | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def attach(self, response: httpx.Response) -> None:
        with self._lock:
            self._response = response
        if self.cancelled:
            self._close(response)

    def detach(self) -> None:
        with self._lock:
            self._response = None

    def cancel(self) -> None:
        """Stop the stream. Safe to call any number of times, from any thread."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            response = self._response
        if response is not None:
            self._close(response)

    @staticmethod
    def _close(response: httpx.Response) -> None:
        try:
            response.close()
        except (httpx.HTTPError, OSError, RuntimeError):
            logger.debug("Ignoring error while closing a cancelled generation stream", exc_info=True)


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the ``data`` payload of each server-sent event."""
    buffer: list[str] = []
    for line in lines:
        if not line.strip():
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip())
    if buffer:
        yield "\n".join(buffer)


def _extract_result(payload: Mapping[str, Any]) -> Any:
    for key in RESULT_KEYS:
        if payload.get(key) is not None:
            return payload[key]
    return None


class GenerationClient:
    """Calls the external website generation service.

    The service answers either with a plain JSON body or with a stream of
    ``data: {...}`` events of type ``progress``, ``complete`` or ``error``.
    Only the initial request is retried; a stream that broke midway is
    reported to the caller.
    """

    def __init__(
        self,
        *,
        base_url: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = GENERATION_TIMEOUT_SECONDS,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._endpoint = endpoint
        self._retry_policy = retry_policy
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._sleep = sleep

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def generate(
        self,
        request: GenerationRequest,
        *,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        handle: GenerationHandle | None = None,
    ) -> Any:
        """Run one generation and return the raw website payload.

        Raises ``GenerationError`` for error events or failed requests,
        ``GenerationIncompleteError`` when the stream ends without a result
        and ``GenerationCancelledError`` after ``handle.cancel()``.
        """
        handle = handle or GenerationHandle()
        payload = request.model_dump(by_alias=True, mode="json")
        try:
            response = self._send(payload, handle)
        except httpx.HTTPError as exc:
            raise GenerationError(f"Generation request failed: {exc}") from exc
        handle.attach(response)
        try:
            if "text/event-stream" in response.headers.get("content-type", ""):
                return self._read_stream(response, request.session_id, on_progress, handle)
            return self._read_body(response)
        except (httpx.HTTPError, httpx.StreamError) as exc:
            if handle.cancelled:
                raise GenerationCancelledError("Generation cancelled") from exc
            raise GenerationError(f"Generation stream failed: {exc}") from exc
        finally:
            handle.detach()
            response.close()

    def _send(self, payload: Mapping[str, Any], handle: GenerationHandle) -> httpx.Response:
        attempts = self._retry_policy.max_attempts
        for attempt in range(attempts):
            if handle.cancelled:
                raise GenerationCancelledError("Generation cancelled before it started")
            last_attempt = attempt == attempts - 1
            try:
                request = self._client.build_request("POST", self._endpoint, json=payload)
                response = self._client.send(request, stream=True)
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                if last_attempt:
                    raise GenerationError(f"Generation service unreachable: {exc}") from exc
                self._backoff(attempt, reason=str(exc))
                continue

            if response.status_code < 400:
                return response
            response.close()
            if self._retry_policy.is_retryable(response.status_code) and not last_attempt:
                self._backoff(attempt, reason=f"HTTP {response.status_code}")
                continue
            raise GenerationError(f"Generation service returned HTTP {response.status_code}")
        raise GenerationError("Generation service retries exhausted")

    def _backoff(self, attempt: int, *, reason: str) -> None:
        delay = self._retry_policy.delay_for(attempt)
        logger.warning(
            "Retrying generation request",
            extra={"attempt": attempt + 1, "delay_seconds": delay, "reason": reason},
        )
        self._sleep(delay)

    def _read_body(self, response: httpx.Response) -> Any:
        response.read()
        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationError("Generation service returned a non-JSON body") from exc
        if isinstance(body, Mapping):
            if body.get("type") == "error" or body.get("success") is False:
                raise GenerationError(str(body.get("error") or "Generation failed"))
            result = _extract_result(body)
            if result is not None:
                return result
        return body

    def _read_stream(
        self,
        response: httpx.Response,
        session_id: str,
        on_progress: Callable[[ProgressEvent], None] | None,
        handle: GenerationHandle,
    ) -> Any:
        for data in iter_sse_data(response.iter_lines()):
            if handle.cancelled:
                raise GenerationCancelledError("Generation cancelled")
            try:
                event = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Skipping unparseable generation event", extra={"session_id": session_id})
                continue
            if not isinstance(event, Mapping):
                continue

            event_type = event.get("type")
            if event_type == "progress":
                if on_progress is None:
                    continue
                try:
                    progress = ProgressEvent.model_validate(event)
                except ValidationError:
                    logger.warning("Skipping malformed progress event", extra={"session_id": session_id})
                    continue
                on_progress(progress)
            elif event_type == "complete":
                result = _extract_result(event)
                if result is None:
                    raise GenerationError("Generation completed without a website payload")
                logger.info("Generation stream completed", extra={"session_id": session_id})
                return result
            elif event_type == "error":
                raise GenerationError(str(event.get("error") or event.get("message") or "Generation failed"))

        if handle.cancelled:
            raise GenerationCancelledError("Generation cancelled")
        raise GenerationIncompleteError("Generation stream ended before completion")


__all__ = ["GenerationClient", "GenerationHandle", "iter_sse_data"]
