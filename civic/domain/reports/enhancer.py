"""Two-tier text processing: optional remote enhancement, rule engine fallback."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Protocol

import httpx

from civic.domain.reports import text_pipeline
from civic.domain.reports.models import Category
from civic.domain.reports.text_pipeline import ProcessedText
from civic.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class EnhancerUnavailable(Exception):
    """Raised when the enhancement service cannot produce a usable answer."""


class TextEnhancer(Protocol):
    async def enhance(self, raw_text: str) -> ProcessedText:
        ...


def parse_enhancement(payload: Any) -> ProcessedText:
    """Validate an enhancement response of the form ``{"clean_text", "category"}``."""

    if not isinstance(payload, Mapping):
        raise EnhancerUnavailable("payload_not_object")
    clean_text = payload.get("clean_text")
    if not isinstance(clean_text, str) or not clean_text.strip():
        raise EnhancerUnavailable("clean_text_missing")
    raw_category = payload.get("category")
    if raw_category is None:
        return ProcessedText(clean_text=clean_text.strip(), category=None)
    try:
        category = Category(str(raw_category).strip().lower())
    except ValueError as exc:
        raise EnhancerUnavailable(f"unknown_category:{raw_category}") from exc
    return ProcessedText(clean_text=clean_text.strip(), category=category)


class HttpTextEnhancer:
    """Calls an external enhancement endpoint with a timeout and bounded retries.

    Only transport failures and 5xx responses are retried; a malformed answer
    fails immediately.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        max_attempts: int = 2,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._max_attempts = max(1, max_attempts)
        self._client = client

    @property
    def deadline_seconds(self) -> float:
        return self._timeout * self._max_attempts

    async def enhance(self, raw_text: str) -> ProcessedText:
        if self._client is not None:
            return await self._enhance_with(self._client, raw_text)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._enhance_with(client, raw_text)

    async def _enhance_with(self, client: httpx.AsyncClient, raw_text: str) -> ProcessedText:
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await client.post(self._url, json={"text": raw_text}, timeout=self._timeout)
            except httpx.TransportError as exc:
                last_error = exc
                logger.warning(
                    "text enhancer request failed",
                    extra={"attempt": attempt, "error": exc.__class__.__name__},
                )
                continue
            if response.status_code >= 500:
                last_error = EnhancerUnavailable(f"upstream_status:{response.status_code}")
                logger.warning(
                    "text enhancer upstream error",
                    extra={"attempt": attempt, "status": response.status_code},
                )
                continue
            if response.status_code >= 400:
                raise EnhancerUnavailable(f"upstream_status:{response.status_code}")
            try:
                body = response.json()
            except ValueError as exc:
                raise EnhancerUnavailable("payload_not_json") from exc
            return parse_enhancement(body)
        raise EnhancerUnavailable("attempts_exhausted") from last_error


class TwoTierCategorizer:
    """Prefer the enhancer's answer; fall back to the deterministic rule engine."""

    def __init__(self, enhancer: Optional[TextEnhancer] = None, *, deadline_seconds: float = 10.0) -> None:
        self.enhancer = enhancer
        self.deadline_seconds = deadline_seconds

    async def process(self, raw_text: str) -> ProcessedText:
        fallback = text_pipeline.process(raw_text)
        if self.enhancer is None:
            return fallback
        try:
            result = await asyncio.wait_for(self.enhancer.enhance(raw_text), timeout=self.deadline_seconds)
        except Exception as exc:  # noqa: BLE001 - enhancement is best-effort
            obs_metrics.ENHANCER_CALLS_TOTAL.labels(outcome="fallback").inc()
            logger.warning("text enhancement unavailable, using rule engine", extra={"error": str(exc)})
            return fallback
        obs_metrics.ENHANCER_CALLS_TOTAL.labels(outcome="enhanced").inc()
        return result
