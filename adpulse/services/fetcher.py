"""
Rate-Limited Fetcher

This module fetches every page of a platform report while respecting two
concurrency gates and retrying transient failures with capped exponential
backoff.

Key Features:
- Global and per-business asyncio semaphores (ConcurrencyGates), owned by one batch
- Strictly ordered pagination driven by the platform adapter
- Retry on HTTP 5xx, HTTP 429 and platform rate-limit error codes (tenacity AsyncRetrying)
- delay = min(base * 2**attempt + uniform(0, jitter), max) milliseconds
- Gates are never held while sleeping between retries or pages
- On exhaustion: integration marked errored, error alert sent, RetryExhaustedError raised

Usage:
    gates = ConcurrencyGates(global_limit=5, per_business_limit=3)
    async with httpx.AsyncClient() as client:
        fetcher = RateLimitedFetcher(client, gates, repository, alerts, settings)
        items = await fetcher.fetch_all_pages(request, adapter, business_id)
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
)

from adpulse.core.config import Settings
from adpulse.core.metrics import etl_pages_fetched, etl_retry
from adpulse.models import Alert, AlertLevel, Platform

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================


class PlatformRequestError(Exception):
    """
    A platform request failed.

    Attributes:
        status_code: HTTP status, or None for transport and parsing failures.
        retryable: Whether the retry policy applies (5xx, 429, rate-limit codes).
        rate_limited: Whether the platform reported a rate limit.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        rate_limited: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.rate_limited = rate_limited


class RetryExhaustedError(PlatformRequestError):
    """All retries of a retryable platform error were used up."""


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, PlatformRequestError) and exc.retryable


# =============================================================================
# Request / Adapter Contracts
# =============================================================================


class PageRequest(BaseModel):
    """One HTTP request for one page of a platform report."""
    method: str = 'GET'
    url: str
    params: Dict[str, Any] = Field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class PageAdapter(Protocol):
    """The part of a platform adapter the fetcher relies on."""

    platform: Platform

    def extract_items(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        ...

    def next_request(self, payload: Dict[str, Any], current: PageRequest) -> Optional[PageRequest]:
        ...

    def is_rate_limit_error(self, payload: Any) -> bool:
        ...


class IntegrationErrorSink(Protocol):
    async def mark_integration_error(self, business_id: str, platform: Platform, message: str) -> None:
        ...


class AlertSink(Protocol):
    async def send(self, alert: Alert) -> bool:
        ...


# =============================================================================
# Concurrency Gates
# =============================================================================


class ConcurrencyGates:
    """
    Global and per-business limits on in-flight platform requests.

    One instance is created per batch run. Per-business semaphores are
    created lazily the first time a business makes a request.
    """

    def __init__(self, global_limit: int = 5, per_business_limit: int = 3) -> None:
        if global_limit < 1 or per_business_limit < 1:
            raise ValueError("Concurrency limits must be at least 1")

        self.global_limit = global_limit
        self.per_business_limit = per_business_limit
        self._global = asyncio.Semaphore(global_limit)
        self._business: Dict[str, asyncio.Semaphore] = {}

    def for_business(self, business_id: str) -> asyncio.Semaphore:
        semaphore = self._business.get(business_id)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.per_business_limit)
            self._business[business_id] = semaphore
        return semaphore

    @asynccontextmanager
    async def slot(self, business_id: str) -> AsyncIterator[None]:
        """Hold the business gate, then the global gate, for one request."""
        async with self.for_business(business_id):
            async with self._global:
                yield


# =============================================================================
# Fetcher
# =============================================================================


class RateLimitedFetcher:
    """
    Paginating platform client with retry, backoff and concurrency gates.

    Retries run through tenacity's AsyncRetrying with backoff_delay() as the
    wait. The sleep and random functions are injectable so tests can run the
    retry policy without real delays.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        gates: ConcurrencyGates,
        repository: IntegrationErrorSink,
        alerts: AlertSink,
        settings: Settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        random_fn: Callable[[], float] = random.random,
    ) -> None:
        self._client = client
        self._gates = gates
        self._repository = repository
        self._alerts = alerts
        self._settings = settings
        self._sleep = sleep
        self._random = random_fn

    def backoff_delay(self, attempt: int) -> float:
        """
        Seconds to wait before retry number `attempt` (0-based).

        Example:
            With the defaults and zero jitter: 1.0, 2.0, 4.0, 8.0, 16.0, then
            capped at 30.0.
        """
        settings = self._settings
        delay_ms = (
            settings.etl_backoff_base_ms * (2 ** attempt)
            + self._random() * settings.etl_backoff_jitter_ms
        )
        return min(delay_ms, settings.etl_backoff_max_ms) / 1000

    async def fetch_all_pages(
        self,
        initial_request: PageRequest,
        adapter: PageAdapter,
        business_id: str,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every page of a report, in order, and return all items.

        Args:
            initial_request: Request for the first page.
            adapter: Platform adapter that extracts items and the next page.
            business_id: Business the request is made for (selects the gate).

        Returns:
            List of raw platform items from all pages.

        Raises:
            RetryExhaustedError: A retryable error persisted past the last retry.
            PlatformRequestError: A non-retryable error occurred.
        """
        platform = adapter.platform.value
        items: List[Dict[str, Any]] = []
        request: Optional[PageRequest] = initial_request
        pages = 0

        while request is not None:
            if pages > 0 and self._settings.etl_page_delay_ms > 0:
                await self._sleep(self._settings.etl_page_delay_ms / 1000)

            payload = await self._fetch_with_retry(request, adapter, business_id)
            pages += 1
            etl_pages_fetched.labels(platform=platform).inc()

            items.extend(adapter.extract_items(payload))
            request = adapter.next_request(payload, request)

        logger.info(
            f"Fetched {len(items)} items in {pages} pages from {platform} for business {business_id}"
        )
        return items

    async def _fetch_with_retry(
        self,
        request: PageRequest,
        adapter: PageAdapter,
        business_id: str,
    ) -> Dict[str, Any]:
        platform = adapter.platform.value
        max_retries = self._settings.etl_max_retries

        def before_sleep(retry_state: RetryCallState) -> None:
            etl_retry.labels(platform=platform).inc()
            logger.warning(
                f"Retrying {platform} request for business {business_id} in "
                f"{retry_state.next_action.sleep:.2f}s "
                f"(retry {retry_state.attempt_number}/{max_retries}): "
                f"{retry_state.outcome.exception()}"
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_retries + 1),
                wait=lambda retry_state: self.backoff_delay(retry_state.attempt_number - 1),
                retry=retry_if_exception(_is_retryable),
                before_sleep=before_sleep,
                sleep=self._sleep,
            ):
                with attempt:
                    return await self._send(request, adapter, business_id)
        except RetryError as e:
            exc = e.last_attempt.exception()
            await self._handle_exhaustion(adapter.platform, business_id, exc)
            raise RetryExhaustedError(
                f"{platform} request failed after {max_retries} retries: {exc}",
                status_code=exc.status_code,
                retryable=False,
                rate_limited=exc.rate_limited,
            ) from exc

    async def _send(
        self,
        request: PageRequest,
        adapter: PageAdapter,
        business_id: str,
    ) -> Dict[str, Any]:
        async with self._gates.slot(business_id):
            try:
                response = await self._client.request(
                    request.method,
                    request.url,
                    params=request.params or None,
                    json=request.json_body,
                    headers=request.headers or None,
                )
            except httpx.HTTPError as exc:
                raise PlatformRequestError(f"Transport error: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        status = response.status_code
        rate_limited = status == 429 or (
            payload is not None and adapter.is_rate_limit_error(payload)
        )

        if status >= 500 or rate_limited:
            raise PlatformRequestError(
                f"HTTP {status}{' (rate limited)' if rate_limited else ''}",
                status_code=status,
                retryable=True,
                rate_limited=rate_limited,
            )

        if status >= 400:
            raise PlatformRequestError(
                f"HTTP {status}: {response.text[:500]}",
                status_code=status,
            )

        if not isinstance(payload, dict):
            raise PlatformRequestError(
                f"Malformed response body (HTTP {status})",
                status_code=status,
            )

        return payload

    async def _handle_exhaustion(
        self,
        platform: Platform,
        business_id: str,
        error: PlatformRequestError,
    ) -> None:
        message = f"Retries exhausted: {error}"
        logger.error(f"{platform.value} sync for business {business_id} gave up: {error}")

        try:
            await self._repository.mark_integration_error(business_id, platform, message)
        except Exception:
            logger.exception(
                f"Failed to mark {platform.value} integration errored for business {business_id}"
            )

        await self._alerts.send(
            Alert(
                level=AlertLevel.ERROR,
                message=f"{platform.value} data sync failed for business {business_id}: {message}",
                source='etl',
                business_id=business_id,
                details={
                    'platform': platform.value,
                    'status_code': error.status_code,
                    'rate_limited': error.rate_limited,
                },
            )
        )
