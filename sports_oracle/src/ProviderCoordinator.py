"""ProviderCoordinator: Concurrent fan-out over all provider clients.

Architecture:
    - One task per provider, all started together
    - Each call bounded by fetch_timeout (on top of the provider's own
      per-request timeout and retry budget)
    - Waits for every task to settle before returning
    - A failing provider yields None; it never fails the whole fan-out
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from .providers import MalformedProviderData, MatchNotFound, ProviderUnavailable

if TYPE_CHECKING:
    from .MatchResult import MatchResult
    from .providers import BaseProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderCoordinator:
    """Runs the same call against every provider concurrently.

    :ivar providers: Dict mapping provider names to client instances.
    :ivar fetch_timeout: Upper bound in seconds for one provider call,
        retries included.
    """

    DEFAULT_FETCH_TIMEOUT = 60.0

    def __init__(
        self,
        providers: dict[str, BaseProvider],
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        """Initialize the coordinator.

        :param providers: Dict mapping provider names to client instances.
        :param fetch_timeout: Timeout per provider call (default: 60.0).
        """
        self.providers = providers
        self.fetch_timeout = fetch_timeout

    async def fetch_live_matches(self) -> dict[str, list[MatchResult] | None]:
        """Fetch the live window from every provider.

        :returns: Dict mapping provider name to its results, or None if the
            provider failed this round.
        """
        return await self._fan_out(
            lambda provider: provider.fetch_live_matches(), "fetch_live_matches"
        )

    async def fetch_match_results(self, match_id: int) -> dict[str, MatchResult | None]:
        """Fetch a fresh record of one match from every provider.

        :param match_id: Canonical match id.
        :returns: Dict mapping provider name to its result, or None if the
            provider failed or does not know the match.
        """
        return await self._fan_out(
            lambda provider: provider.fetch_match_result(match_id),
            f"fetch_match_result({match_id})",
        )

    async def _fan_out(
        self,
        call: Callable[[BaseProvider], Awaitable[T]],
        label: str,
    ) -> dict[str, T | None]:
        if not self.providers:
            return {}

        names = list(self.providers)
        tasks = [
            asyncio.wait_for(call(self.providers[name]), timeout=self.fetch_timeout)
            for name in names
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: dict[str, T | None] = {}
        for name, outcome in zip(names, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                self._log_failure(name, label, outcome)
                results[name] = None
            else:
                results[name] = outcome
        return results

    @staticmethod
    def _log_failure(name: str, label: str, error: BaseException) -> None:
        if isinstance(error, MatchNotFound):
            logger.info(f"[{name}] {label}: match not listed by this provider")
        elif isinstance(error, asyncio.TimeoutError):
            logger.warning(f"[{name}] {label}: timeout")
        elif isinstance(error, ProviderUnavailable):
            logger.warning(f"[{name}] {label}: provider unavailable: {error}")
        elif isinstance(error, MalformedProviderData):
            logger.warning(f"[{name}] {label}: malformed data dropped: {error}")
        else:
            logger.warning(f"[{name}] {label}: error: {error!r}")
