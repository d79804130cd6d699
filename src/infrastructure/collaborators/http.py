"""
FILE: src/infrastructure/collaborators/http.py

httpx clients for the behavioral-analysis and allocation-generation collaborators.
Payloads are validated at this boundary; callers only ever see validated models or one of
the ExternalServiceError subclasses.
"""

import logging
import time
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from src.core.collaborators import (
    AllocationGenerationRequest,
    BehavioralAnalysisRequest,
    GeneratedAllocation,
)
from src.core.errors import (
    ExternalPayloadError,
    ExternalServiceError,
    ExternalServiceUnavailableError,
)
from src.core.models import BehavioralAnalysis

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


def call_with_retry(
    send: Callable[[], httpx.Response],
    *,
    operation: str,
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Sends a request until it succeeds or the attempt cap is reached.

    Transport errors, timeouts and 429/502/503/504 responses are retried with
    backoff_seconds * 2^(attempt - 1) between attempts. Any other HTTP error or an undecodable
    body is raised immediately.
    """
    attempts = max(1, max_attempts)
    last_failure = ""
    for attempt in range(1, attempts + 1):
        try:
            response = send()
        except httpx.TransportError as exc:
            last_failure = type(exc).__name__
        else:
            if response.status_code in RETRYABLE_STATUS_CODES:
                last_failure = f"HTTP {response.status_code}"
            elif response.status_code >= 400:
                raise ExternalServiceError(
                    f"EXTERNAL_SERVICE_HTTP_ERROR: {operation} returned {response.status_code}"
                )
            else:
                try:
                    return response.json()
                except ValueError as exc:
                    raise ExternalPayloadError(
                        f"EXTERNAL_PAYLOAD_INVALID: {operation} returned non-JSON body"
                    ) from exc

        if attempt < attempts:
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "external_call.retry",
                extra={
                    "extra_fields": {
                        "operation": operation,
                        "attempt": attempt,
                        "failure": last_failure,
                        "delay_seconds": delay,
                    }
                },
            )
            sleep(delay)

    raise ExternalServiceUnavailableError(
        f"EXTERNAL_SERVICE_UNAVAILABLE: {operation} failed after {attempts} attempts "
        f"({last_failure})"
    )


class _HttpCollaborator:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 20.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"), timeout=httpx.Timeout(timeout_seconds)
        )
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    def _post(self, path: str, *, operation: str, body: dict[str, Any]) -> Any:
        return call_with_retry(
            lambda: self._client.post(path, json=body),
            operation=operation,
            max_attempts=self._max_attempts,
            backoff_seconds=self._backoff_seconds,
            sleep=self._sleep,
        )

    def close(self) -> None:
        self._client.close()


class HttpBehavioralAnalyzer(_HttpCollaborator):
    def analyze(
        self, request: BehavioralAnalysisRequest, *, model_variant: str
    ) -> BehavioralAnalysis:
        body = {**request.model_dump(mode="json"), "model_variant": model_variant}
        payload = self._post("/analyze", operation="behavioral_analysis", body=body)
        try:
            return BehavioralAnalysis.model_validate(payload)
        except ValidationError as exc:
            raise ExternalPayloadError(
                "EXTERNAL_PAYLOAD_INVALID: behavioral analysis schema mismatch"
            ) from exc


class HttpAllocationGenerator(_HttpCollaborator):
    def generate_allocation(
        self, request: AllocationGenerationRequest, *, model_variant: str
    ) -> GeneratedAllocation:
        body = {**request.model_dump(mode="json"), "model_variant": model_variant}
        payload = self._post("/allocations", operation="allocation_generation", body=body)
        try:
            return GeneratedAllocation.model_validate(payload)
        except ValidationError as exc:
            raise ExternalPayloadError(
                "EXTERNAL_PAYLOAD_INVALID: generated allocation schema mismatch"
            ) from exc
