"""OracleMonitor: Main loop of the sports result oracle.

Each cycle:
    1. Fan out fetch_live_matches() to every provider concurrently
    2. Group the returned records by canonical match id
    3. For every match reported FINISHED, not yet in the ledger and listed
       by at least threshold providers, fetch a fresh record from every
       provider and run consensus over the FINISHED ones
    4. Submit an agreed result on-chain; add the match to the ledger only
       once the transaction is confirmed
    5. Sleep cycle_interval after the cycle completes (fixed delay, so
       cycles never overlap)

Per-match states: UNSEEN -> OBSERVED -> FINISHED_PENDING_SUBMIT -> SUBMITTED.
Only SUBMITTED is terminal.

Provider errors, missing consensus and failed submissions never stop the
loop; they are logged and the match stays eligible for a later cycle.
Failed submissions back off exponentially per match.
Matches that leave every live listing are forgotten.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from web3.exceptions import Web3Exception

from .BackoffTracker import BackoffTracker
from .ContractUtility import ContractUtility
from .MatchResult import MatchResult, MatchStatus
from .ProcessedMatchesLedger import ProcessedMatchesLedger
from .ProviderCoordinator import ProviderCoordinator
from .providers import BaseProvider, get_provider
from .ResultValidator import ResultValidator, tally_scores
from .SettlementSubmitter import SettlementSubmitter, SubmissionFailed

if TYPE_CHECKING:
    from .OracleConfig import OracleConfig

logger = logging.getLogger(__name__)


class MatchState(str, Enum):
    """Lifecycle of a match inside the monitor."""

    UNSEEN = "UNSEEN"
    OBSERVED = "OBSERVED"
    FINISHED_PENDING_SUBMIT = "FINISHED_PENDING_SUBMIT"
    SUBMITTED = "SUBMITTED"


@dataclass
class CycleSummary:
    """What happened during one monitor cycle.

    :ivar observed: Number of distinct matches seen in the live listings.
    :ivar providers_ok: Providers that answered the live listing.
    :ivar providers_failed: Providers that failed the live listing.
    :ivar finished: Matches reported finished and not yet settled.
    :ivar submitted: Matches settled on-chain this cycle.
    :ivar deferred: Matches left for a later cycle (no consensus or backoff).
    :ivar failed: Matches whose submission failed this cycle.
    :ivar created: Games registered on-chain this cycle.
    """

    observed: int = 0
    providers_ok: list[str] = field(default_factory=list)
    providers_failed: list[str] = field(default_factory=list)
    finished: list[int] = field(default_factory=list)
    submitted: list[int] = field(default_factory=list)
    deferred: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    created: list[int] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"observed={self.observed}, providers={len(self.providers_ok)}ok/"
            f"{len(self.providers_failed)}failed, finished={len(self.finished)}, "
            f"submitted={len(self.submitted)}, deferred={len(self.deferred)}, "
            f"failed={len(self.failed)}, created={len(self.created)}"
        )


class OracleMonitor:
    """Orchestrates providers, consensus, settlement and the ledger.

    :ivar validator: Consensus engine.
    :ivar submitter: Settlement submitter.
    :ivar ledger: Match ids already settled on-chain.
    :ivar cycle_interval: Seconds slept between cycles.
    :ivar create_games: Register upcoming matches with the contract.
    :ivar seed_from_block: Block to seed the ledger from, or None.
    :ivar match_states: Current state of every match in the live window.
    """

    def __init__(
        self,
        providers: dict[str, BaseProvider],
        validator: ResultValidator,
        submitter: SettlementSubmitter,
        ledger: ProcessedMatchesLedger | None = None,
        cycle_interval: float = 60.0,
        fetch_timeout: float = ProviderCoordinator.DEFAULT_FETCH_TIMEOUT,
        submission_backoff: BackoffTracker | None = None,
        create_games: bool = False,
        seed_from_block: int | None = None,
    ) -> None:
        """Initialize the monitor.

        :param providers: Dict mapping provider names to client instances.
        :param validator: Consensus engine.
        :param submitter: Settlement submitter.
        :param ledger: Ledger of settled matches (default: fresh in-memory).
        :param cycle_interval: Seconds between cycles (default: 60).
        :param fetch_timeout: Upper bound per provider call (default: 60).
        :param submission_backoff: Backoff for failed submissions (default:
            base = cycle_interval, cap = 1 hour).
        :param create_games: Register upcoming matches on-chain (default: False).
        :param seed_from_block: Seed the ledger from GameResultSet events
            starting at this block (default: no seeding).
        """
        self.providers = providers
        self.coordinator = ProviderCoordinator(providers, fetch_timeout=fetch_timeout)
        self.validator = validator
        self.submitter = submitter
        self.ledger = ledger if ledger is not None else ProcessedMatchesLedger()
        self.cycle_interval = cycle_interval
        self.submission_backoff = submission_backoff or BackoffTracker(
            base_backoff_seconds=cycle_interval
        )
        self.create_games = create_games
        self.seed_from_block = seed_from_block

        self.match_states: dict[int, MatchState] = {}
        self._stop_event = asyncio.Event()

        logger.info(
            f"OracleMonitor initialized: providers={list(providers)}, "
            f"threshold={validator.confirmation_threshold}, "
            f"interval={cycle_interval}s, ledger={len(self.ledger)} matches"
        )

    @classmethod
    def from_config(cls, config: OracleConfig) -> OracleMonitor:
        """Build a monitor and all its collaborators from configuration.

        :param config: Validated oracle configuration.
        :returns: Ready-to-start monitor.
        :raises ValueError: If the configuration is invalid.
        """
        config.validate()

        providers: dict[str, BaseProvider] = {}
        for name in config.providers:
            providers[name] = get_provider(
                name,
                api_key=config.api_keys.get(name),
                base_url=config.base_urls.get(name),
                timeout=config.request_timeout,
                retry_attempts=config.retry_attempts,
                retry_delay=config.retry_delay,
                lookback_days=config.lookback_days,
                **config.provider_options.get(name, {}),
            )

        contract_utility = ContractUtility(config.rpc_url, private_key=config.private_key)
        contract = contract_utility.load_contract(config.contract_address)
        logger.info(
            f"Settlement contract {contract.address}, oracle account {contract_utility.address}"
        )

        submitter = SettlementSubmitter(
            w3=contract_utility.w3,
            contract=contract,
            sender=contract_utility.address,
            confirmations=config.confirmations,
            receipt_timeout=config.receipt_timeout,
        )

        return cls(
            providers=providers,
            validator=ResultValidator(config.confirmation_threshold),
            submitter=submitter,
            ledger=ProcessedMatchesLedger(config.ledger_path),
            cycle_interval=config.cycle_interval,
            fetch_timeout=config.fetch_timeout,
            create_games=config.create_games,
            seed_from_block=config.seed_from_block,
        )

    async def start(self) -> None:
        """Run cycles until stop() is called.

        The in-flight cycle always runs to completion; stop() only prevents
        the next one from being scheduled.
        """
        await self._seed_ledger()
        logger.info(f"Oracle monitor started (interval {self.cycle_interval}s)")

        try:
            while not self._stop_event.is_set():
                try:
                    summary = await self.run_cycle()
                    logger.info(f"Cycle complete: {summary}")
                except Exception:
                    logger.exception("Cycle failed, continuing with next cycle")

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.cycle_interval
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            await BaseProvider.close_shared_client()
            logger.info("Oracle monitor stopped")

    def stop(self) -> None:
        """Stop scheduling new cycles."""
        if not self._stop_event.is_set():
            logger.info("Stop requested, finishing current cycle")
        self._stop_event.set()

    async def run_cycle(self) -> CycleSummary:
        """Run one fetch / consensus / settle pass.

        :returns: Summary of the cycle.
        """
        summary = CycleSummary()

        live = await self.coordinator.fetch_live_matches()
        grouped: dict[int, list[MatchResult]] = {}
        for name, results in live.items():
            if results is None:
                summary.providers_failed.append(name)
                continue
            summary.providers_ok.append(name)
            for result in results:
                grouped.setdefault(result.match_id, []).append(result)

        if not summary.providers_ok:
            logger.warning("No provider answered this cycle")
        summary.observed = len(grouped)

        for match_id, results in grouped.items():
            self._observe(match_id, results)

            if match_id in self.ledger:
                continue

            if not any(r.is_finished for r in results):
                if self.create_games:
                    await self._create_game(match_id, results, summary)
                continue

            summary.finished.append(match_id)
            if not self.submission_backoff.is_active(match_id):
                remaining = self.submission_backoff.get_backoff_remaining(match_id)
                logger.info(
                    f"match {match_id}: submission in backoff for {remaining:.0f}s"
                )
                summary.deferred.append(match_id)
                continue

            # Only providers that listed the match can refresh it
            listed_by = {r.source for r in results}
            if len(listed_by) < self.validator.confirmation_threshold:
                logger.debug(
                    f"match {match_id}: listed by {len(listed_by)} providers "
                    f"({', '.join(sorted(listed_by))}), below threshold "
                    f"{self.validator.confirmation_threshold}; deferring"
                )
                summary.deferred.append(match_id)
                continue

            await self._settle(match_id, summary)

        if summary.providers_ok:
            self._prune(grouped)
        return summary

    def _prune(self, grouped: dict[int, list[MatchResult]]) -> None:
        """Forget matches that dropped out of every live listing."""
        stale = [m for m in self.match_states if m not in grouped]
        for match_id in stale:
            del self.match_states[match_id]
            # Expired backoff entries go too; running ones still apply if it returns
            for key in (match_id, ("create", match_id)):
                if self.submission_backoff.is_active(key):
                    self.submission_backoff.record_success(key)
        if stale:
            logger.debug(f"Pruned {len(stale)} matches no longer in the live window")

    def _observe(self, match_id: int, results: list[MatchResult]) -> None:
        previous = self.match_states.get(match_id, MatchState.UNSEEN)

        if match_id in self.ledger:
            state = MatchState.SUBMITTED
        elif any(r.is_finished for r in results):
            state = MatchState.FINISHED_PENDING_SUBMIT
        else:
            state = MatchState.OBSERVED

        if state is previous:
            return
        self.match_states[match_id] = state

        first = results[0]
        sources = ", ".join(f"{r.source}={r.home_score}-{r.away_score}" for r in results)
        logger.info(
            f"match {match_id}: {previous.value} -> {state.value} "
            f"({first.home_team} vs {first.away_team}; {sources})"
        )

    async def _settle(self, match_id: int, summary: CycleSummary) -> None:
        fresh = await self.coordinator.fetch_match_results(match_id)
        finished = [r for r in fresh.values() if r is not None and r.is_finished]

        outcome = self.validator.validate(finished)
        if outcome is None:
            tally = ", ".join(
                f"{home}-{away} x{len(group)} [{', '.join(r.source for r in group)}]"
                for (home, away), group in tally_scores(finished).items()
            )
            logger.info(
                f"match {match_id}: no consensus "
                f"(threshold {self.validator.confirmation_threshold}, "
                f"finished reports: {tally or 'none'}), deferring"
            )
            summary.deferred.append(match_id)
            return

        logger.info(
            f"match {match_id}: consensus {outcome.home_score}-{outcome.away_score} "
            f"{outcome.winner.name} agreed by {outcome.agreement_count} "
            f"({', '.join(outcome.sources)}), chosen source {outcome.chosen_source}"
        )

        try:
            receipt = await self.submitter.submit(outcome)
        except SubmissionFailed as e:
            backoff = self.submission_backoff.record_failure(match_id)
            summary.failed.append(match_id)
            if e.rejected:
                hint = " (likely already settled)" if e.already_finalized else ""
                logger.error(
                    f"match {match_id}: submission REJECTED by contract{hint}: {e} "
                    f"tx={e.transaction_id}; not retrying for {backoff:.0f}s"
                )
            else:
                logger.warning(
                    f"match {match_id}: submission failed transiently: {e} "
                    f"tx={e.transaction_id}; retrying in {backoff:.0f}s"
                )
            return

        if not receipt.confirmed:
            backoff = self.submission_backoff.record_failure(match_id)
            logger.warning(
                f"match {match_id}: tx {receipt.transaction_id} not confirmed; "
                f"retrying in {backoff:.0f}s"
            )
            summary.failed.append(match_id)
            return

        self.submission_backoff.record_success(match_id)
        self.match_states[match_id] = MatchState.SUBMITTED
        summary.submitted.append(match_id)
        try:
            self.ledger.add(match_id)
        except OSError as e:
            # The in-memory ledger already holds the match
            logger.error(f"match {match_id}: ledger could not be persisted: {e}")
        logger.info(
            f"match {match_id}: settled in tx {receipt.transaction_id} "
            f"(block {receipt.block_number})"
        )

    async def _create_game(
        self, match_id: int, results: list[MatchResult], summary: CycleSummary
    ) -> None:
        if self.ledger.is_created(match_id):
            return
        upcoming = next((r for r in results if r.status is MatchStatus.NOT_STARTED), None)
        if upcoming is None:
            return

        backoff_key = ("create", match_id)
        if not self.submission_backoff.is_active(backoff_key):
            return

        try:
            receipt = await self.submitter.create_game(upcoming)
        except SubmissionFailed as e:
            backoff = self.submission_backoff.record_failure(backoff_key)
            logger.warning(
                f"match {match_id}: createGame failed: {e}; retrying in {backoff:.0f}s"
            )
            return

        self.submission_backoff.record_success(backoff_key)
        summary.created.append(match_id)
        try:
            self.ledger.mark_created(match_id)
        except OSError as e:
            logger.error(f"match {match_id}: ledger could not be persisted: {e}")
        logger.info(
            f"match {match_id}: game created in tx {receipt.transaction_id} "
            f"({upcoming.home_team} vs {upcoming.away_team})"
        )

    async def _seed_ledger(self) -> None:
        if self.seed_from_block is None:
            return
        try:
            recorded = await self.submitter.fetch_recorded_results(self.seed_from_block)
            added = self.ledger.add_many(recorded)
        except (Web3Exception, OSError, ValueError) as e:
            logger.warning(f"Could not seed ledger from chain: {e}")
            return
        logger.info(
            f"Seeded ledger from block {self.seed_from_block}: "
            f"{len(recorded)} results on-chain, {added} new"
        )
