"""Base provider interface and shared HTTP client management.

All provider clients inherit from BaseProvider, which implements the public
contract (``fetch_live_matches`` / ``fetch_match_result``), the retry policy
and normalization helpers. Subclasses only describe their vendor's API:
which payloads to fetch and how one native record maps onto a MatchResult.

A shared httpx.AsyncClient is used across all providers to avoid connection
overhead.

.. code-block:: python

    @register_provider
    class MyProvider(BaseProvider):
        name = "myprovider"
        DEFAULT_BASE_URL = "https://api.example.com/v1"
        API_KEY_HEADER = "x-api-key"
        STATUS_MAP = {"FT": MatchStatus.FINISHED, ...}

        async def _fetch_live_payload(self) -> list[dict]:
            return (await self._get("/matches"))["matches"]

        async def _fetch_match_payload(self, native_id: str) -> dict:
            return await self._get(f"/matches/{native_id}")

        def _native_id(self, raw: dict) -> str:
            return str(raw["id"])

        def _normalize(self, raw: dict) -> MatchResult:
            ...
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar

import httpx

from ..MatchResult import MatchResult, MatchStatus, canonical_match_id

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class ProviderConfigError(ProviderError):
    """Raised when provider configuration is invalid (e.g., missing API key)."""

    pass


class ProviderHTTPError(ProviderError):
    """Raised when an HTTP request returns a non-2xx status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")

    @property
    def transient(self) -> bool:
        """Server errors and rate limiting are worth retrying."""
        return self.status_code >= 500 or self.status_code == 429


class ProviderUnavailable(ProviderError):
    """Raised when a call still fails after the retry budget is exhausted.

    :ivar provider: Name of the provider.
    """

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class MatchNotFound(ProviderError):
    """Raised when a provider has no record of the requested match.

    :ivar provider: Name of the provider.
    :ivar match_id: Canonical match id that was requested.
    """

    def __init__(self, provider: str, match_id: int):
        self.provider = provider
        self.match_id = match_id
        super().__init__(f"[{provider}] match {match_id} not found")


class MalformedProviderData(ProviderError):
    """Raised when a provider record cannot be normalized."""

    pass


def parse_kickoff(value: Any) -> int:
    """Parse a kickoff time into epoch milliseconds.

    Accepts ISO-8601 strings (naive values are taken as UTC) and epoch
    seconds.

    :param value: Raw kickoff value.
    :returns: Epoch milliseconds.
    :raises MalformedProviderData: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        raise MalformedProviderData(f"Unparseable kickoff time: {value!r}")
    if isinstance(value, (int, float)):
        return int(value * 1000)
    if not isinstance(value, str) or not value:
        raise MalformedProviderData(f"Unparseable kickoff time: {value!r}")

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise MalformedProviderData(f"Unparseable kickoff time: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def parse_score(value: Any, status: MatchStatus, side: str) -> int:
    """Parse a score, enforcing that finished matches carry real values.

    :param value: Raw score value (int, numeric string or None).
    :param status: Normalized status of the match.
    :param side: "home" or "away", for error messages.
    :returns: Non-negative goal count; 0 for matches without a score yet.
    :raises MalformedProviderData: If a finished match has no score or the
        value is not a non-negative integer.
    """
    if value is None:
        if status is MatchStatus.FINISHED:
            raise MalformedProviderData(f"Finished match without {side} score")
        return 0
    if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
        raise MalformedProviderData(f"Invalid {side} score: {value!r}")
    try:
        score = int(value)
    except (TypeError, ValueError) as e:
        raise MalformedProviderData(f"Invalid {side} score: {value!r}") from e
    if score < 0:
        raise MalformedProviderData(f"Invalid {side} score: {value!r}")
    return score


class BaseProvider(ABC):
    """Abstract base class for sports-data provider clients.

    Subclasses must define:
        - name: Class variable identifying the provider
        - DEFAULT_BASE_URL, API_KEY_HEADER, STATUS_MAP
        - _fetch_live_payload(), _fetch_match_payload(), _native_id(), _normalize()

    Every network call is retried up to ``retry_attempts`` times with
    ``retry_delay`` seconds between attempts on timeouts, connection errors,
    HTTP 5xx and HTTP 429. After that ProviderUnavailable is raised.

    :cvar name: Unique identifier for this provider.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: API key sent in the vendor's auth header.
    :ivar base_url: API base URL.
    :ivar timeout: Request timeout in seconds.
    :ivar retry_attempts: Attempts per network call.
    :ivar retry_delay: Seconds between attempts.
    :ivar lookback_days: Past UTC days included in the live window.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""
    DEFAULT_BASE_URL: ClassVar[str] = ""
    API_KEY_HEADER: ClassVar[str] = ""
    STATUS_MAP: ClassVar[dict[str, MatchStatus]] = {}

    DEFAULT_TIMEOUT = 10.0
    DEFAULT_RETRY_ATTEMPTS = 3
    DEFAULT_RETRY_DELAY = 5.0

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        lookback_days: int = 1,
    ):
        """Initialize the provider.

        :param api_key: API key for the vendor (required).
        :param base_url: Optional base URL override.
        :param timeout: Request timeout in seconds (default: 10).
        :param retry_attempts: Attempts per call (default: 3).
        :param retry_delay: Seconds between attempts (default: 5).
        :param lookback_days: Past days to include in live listings (default: 1).
        :raises ProviderConfigError: If the API key is missing or options are invalid.
        """
        if not api_key:
            raise ProviderConfigError(f"[{self.name}] API key is required")
        if retry_attempts < 1:
            raise ProviderConfigError(f"[{self.name}] retry_attempts must be at least 1")

        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.lookback_days = max(0, lookback_days)

        # canonical match id -> native id, replaced by every successful listing
        self._native_ids: dict[int, str] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self.base_url!r})"

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all provider instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseProvider._shared_client is None or BaseProvider._shared_client.is_closed:
            BaseProvider._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return BaseProvider._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseProvider._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseProvider._shared_client = None

    async def fetch_live_matches(self) -> list[MatchResult]:
        """Fetch matches in the live window (today plus lookback days).

        Records that fail normalization are logged and dropped; the rest are
        returned.

        :returns: Normalized results.
        :raises ProviderUnavailable: If the listing cannot be fetched.
        """
        payload = await self._fetch_live_payload()

        results: list[MatchResult] = []
        native_ids: dict[int, str] = {}
        for raw in payload:
            try:
                result = self._normalize(raw)
                native_id = self._native_id(raw)
            except (MalformedProviderData, KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.name}] Dropping malformed record: {e}")
                continue
            native_ids[result.match_id] = native_id
            results.append(result)

        # Matches outside the window are forgotten; a failed listing keeps the old map
        self._native_ids = native_ids
        logger.debug(f"[{self.name}] {len(results)} matches in live window")
        return results

    async def fetch_match_result(self, match_id: int) -> MatchResult:
        """Fetch a fresh record for one match.

        :param match_id: Canonical match id.
        :returns: Normalized result.
        :raises MatchNotFound: If this provider has never listed the match or
            the vendor reports it missing.
        :raises MalformedProviderData: If the record cannot be normalized.
        :raises ProviderUnavailable: If the call exhausted its retries.
        """
        native_id = self._native_ids.get(match_id)
        if native_id is None:
            raise MatchNotFound(self.name, match_id)

        try:
            raw = await self._fetch_match_payload(native_id)
        except ProviderHTTPError as e:
            if e.status_code == 404:
                raise MatchNotFound(self.name, match_id) from e
            raise
        if raw is None:
            raise MatchNotFound(self.name, match_id)

        try:
            result = self._normalize(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedProviderData(f"[{self.name}] {e}") from e

        if result.match_id != match_id:
            # Kickoff moved to another day or teams renamed; remember the new key
            self._native_ids[result.match_id] = native_id
            raise MatchNotFound(self.name, match_id)
        return result

    @abstractmethod
    async def _fetch_live_payload(self) -> list[dict]:
        """Return the raw records of the live window."""
        pass

    @abstractmethod
    async def _fetch_match_payload(self, native_id: str) -> dict | None:
        """Return the raw record of a single match, or None if absent."""
        pass

    @abstractmethod
    def _native_id(self, raw: dict) -> str:
        """Return the vendor's own id of a raw record."""
        pass

    @abstractmethod
    def _normalize(self, raw: dict) -> MatchResult:
        """Map one raw record onto a MatchResult.

        :raises MalformedProviderData: If the record cannot be normalized.
        """
        pass

    def _map_status(self, native_status: Any) -> MatchStatus:
        """Map a vendor status onto the normalized status enum.

        :raises MalformedProviderData: If the status is unknown.
        """
        status = self.STATUS_MAP.get(str(native_status))
        if status is None:
            raise MalformedProviderData(f"Unknown status {native_status!r}")
        return status

    def _make_result(
        self,
        *,
        home_team: Any,
        away_team: Any,
        home_score: Any,
        away_score: Any,
        status: MatchStatus,
        kickoff: Any,
        league: Any = "",
        season: Any = "",
        match_day: Any = "",
    ) -> MatchResult:
        """Build a MatchResult from raw field values.

        :raises MalformedProviderData: If any field fails validation.
        """
        if not home_team or not away_team:
            raise MalformedProviderData("Missing team name")

        timestamp = parse_kickoff(kickoff)
        return MatchResult(
            match_id=canonical_match_id(str(home_team), str(away_team), timestamp),
            home_team=str(home_team),
            away_team=str(away_team),
            home_score=parse_score(home_score, status, "home"),
            away_score=parse_score(away_score, status, "away"),
            status=status,
            league=str(league or ""),
            season=str(season or ""),
            match_day=str(match_day or ""),
            timestamp=timestamp,
            source=self.name,
        )

    def _date_window(self) -> list[str]:
        """Return UTC dates (YYYY-MM-DD) from lookback_days ago up to today."""
        today = datetime.now(timezone.utc).date()
        return [
            (today - timedelta(days=offset)).isoformat()
            for offset in range(self.lookback_days, -1, -1)
        ]

    def _headers(self) -> dict[str, str]:
        return {self.API_KEY_HEADER: self.api_key} if self.api_key else {}

    async def _get(self, path: str, *, params: dict | None = None) -> Any:
        """Make an HTTP GET request with the retry policy and decode JSON.

        :param path: Path appended to base_url.
        :param params: Optional query parameters.
        :returns: Decoded JSON body.
        :raises ProviderHTTPError: On a non-retryable non-2xx response.
        :raises MalformedProviderData: If the body is not valid JSON.
        :raises ProviderUnavailable: If all attempts failed transiently.
        """
        url = f"{self.base_url}{path}"
        client = self.get_shared_client()
        last_error: ProviderError | None = None

        for attempt in range(1, self.retry_attempts + 1):
            try:
                response = await client.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                last_error = ProviderError(f"Request timeout: {e}")
            except httpx.RequestError as e:
                last_error = ProviderError(f"Request failed: {e}")
            else:
                if response.is_success:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise MalformedProviderData(
                            f"[{self.name}] Invalid JSON from {url}: {e}"
                        ) from e

                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                http_error = ProviderHTTPError(response.status_code, response.text[:200])
                if not http_error.transient:
                    raise http_error
                last_error = http_error

            logger.warning(
                "[%s] GET %s failed: %s (attempt %d/%d)",
                self.name,
                path,
                last_error,
                attempt,
                self.retry_attempts,
            )
            if attempt < self.retry_attempts:
                await asyncio.sleep(self.retry_delay)

        raise ProviderUnavailable(
            self.name,
            f"GET {path} failed after {self.retry_attempts} attempts: {last_error}",
        ) from last_error


# Registry of available providers (populated by subclass imports)
PROVIDER_REGISTRY: dict[str, type[BaseProvider]] = {}


def register_provider(cls: type[BaseProvider]) -> type[BaseProvider]:
    """Decorator to register a provider class in the global registry.

    :param cls: Provider class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If provider has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Provider {cls.__name__} must define a 'name' class variable")
    PROVIDER_REGISTRY[cls.name] = cls
    return cls


def get_provider(name: str, api_key: str | None = None, **options: Any) -> BaseProvider:
    """Get a provider instance by name.

    :param name: Provider name (e.g., "football_data").
    :param api_key: API key for the vendor.
    :param options: Extra constructor options (base_url, timeout, retry_attempts, ...).
    :returns: Provider instance.
    :raises ValueError: If provider name is unknown.
    """
    if name not in PROVIDER_REGISTRY:
        available = ", ".join(sorted(PROVIDER_REGISTRY.keys()))
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    return PROVIDER_REGISTRY[name](api_key=api_key, **options)


def get_available_providers() -> list[str]:
    """Get list of available provider names.

    :returns: Sorted list of registered provider names.
    """
    return sorted(PROVIDER_REGISTRY.keys())
