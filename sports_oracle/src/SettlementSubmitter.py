"""SettlementSubmitter: Reports consensus results to the settlement contract.

Transaction lifecycle:
    1. Build the call (gas estimation runs the call, so most reverts
       surface here before any fee is spent)
    2. Sign and send with the oracle account
    3. Wait for the receipt (inclusion in a block)
    4. Optionally wait until the block is ``confirmations`` deep

Failures are classified for the caller:
    - REJECTED: the contract reverted (unauthorized oracle, match already
      finalized, invalid state). Retrying the same call will fail again.
    - TRANSIENT: node or network trouble, or the receipt did not arrive in
      time. The whole submit may be retried later.

The web3 client is synchronous; blocking calls run in a worker thread so
the event loop keeps serving other tasks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

if TYPE_CHECKING:
    from web3.contract import Contract
    from web3.contract.contract import ContractFunction

    from .MatchResult import MatchResult
    from .ResultValidator import ConsensusOutcome

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    """Classification of a failed submission."""

    TRANSIENT = "transient"
    REJECTED = "rejected"


class SubmissionFailed(Exception):
    """Raised when a settlement transaction did not go through.

    :ivar match_id: Canonical match id of the submission.
    :ivar kind: TRANSIENT or REJECTED.
    :ivar transaction_id: Hash of the sent transaction, if it was sent.
    """

    def __init__(
        self,
        match_id: int,
        kind: FailureKind,
        message: str,
        transaction_id: str | None = None,
    ):
        self.match_id = match_id
        self.kind = kind
        self.transaction_id = transaction_id
        super().__init__(f"match {match_id}: {kind.value}: {message}")

    @property
    def transient(self) -> bool:
        return self.kind is FailureKind.TRANSIENT

    @property
    def rejected(self) -> bool:
        return self.kind is FailureKind.REJECTED

    @property
    def already_finalized(self) -> bool:
        """Best-effort check for a duplicate-result revert reason."""
        text = str(self).lower()
        return self.rejected and ("already" in text or "finalized" in text)


@dataclass(frozen=True)
class SubmissionReceipt:
    """Outcome of a settlement transaction.

    :ivar match_id: Canonical match id.
    :ivar transaction_id: Transaction hash (0x-prefixed hex).
    :ivar confirmed: True once the transaction is included successfully.
    :ivar block_number: Block that included the transaction.
    """

    match_id: int
    transaction_id: str
    confirmed: bool
    block_number: int | None = None


class SettlementSubmitter:
    """Signs and sends result reports to the settlement contract.

    Holds no state beyond the web3 connection and the contract binding; the
    signing account is configured on the web3 instance.

    :ivar w3: Web3 instance with the oracle signer installed.
    :ivar contract: Settlement contract binding.
    :ivar confirmations: Blocks the receipt must be buried under (1 = included).
    :ivar receipt_timeout: Seconds to wait for the receipt and confirmations.
    :ivar poll_interval: Seconds between receipt / block polls.
    """

    RESULT_FUNCTION = "proposeResult"

    def __init__(
        self,
        w3: Web3,
        contract: Contract,
        sender: str | None = None,
        confirmations: int = 1,
        receipt_timeout: float = 120.0,
        poll_interval: float = 2.0,
        gas_price_fn: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the submitter.

        :param w3: Web3 instance with the oracle signer installed.
        :param contract: Settlement contract binding.
        :param sender: Oracle account address (default: w3.eth.default_account).
        :param confirmations: Required confirmation depth (default: 1).
        :param receipt_timeout: Receipt wait timeout in seconds (default: 120).
        :param poll_interval: Poll interval in seconds (default: 2).
        :param gas_price_fn: Callable returning the gas price (default: node's).
        :raises ValueError: If confirmations is below 1.
        """
        if confirmations < 1:
            raise ValueError("confirmations must be at least 1")

        self.w3 = w3
        self.contract = contract
        self.sender = sender
        self.confirmations = confirmations
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.gas_price_fn = gas_price_fn or (lambda: self.w3.eth.gas_price)

    async def submit(self, outcome: ConsensusOutcome) -> SubmissionReceipt:
        """Report a consensus outcome on-chain.

        The outcome is not re-validated.

        :param outcome: Outcome that passed consensus.
        :returns: Receipt with confirmed=True.
        :raises SubmissionFailed: On revert (REJECTED) or node trouble (TRANSIENT).
        """
        call = getattr(self.contract.functions, self.RESULT_FUNCTION)(
            outcome.match_id,
            int(outcome.winner),
            outcome.home_score,
            outcome.away_score,
        )
        label = (
            f"{self.RESULT_FUNCTION}({outcome.match_id}, {outcome.winner.name}, "
            f"{outcome.home_score}-{outcome.away_score})"
        )
        return await asyncio.to_thread(self._transact, outcome.match_id, call, label)

    async def create_game(self, match: MatchResult) -> SubmissionReceipt:
        """Register a match with the settlement contract so bets can be placed.

        :param match: Observed match (kickoff time is sent in seconds).
        :returns: Receipt with confirmed=True.
        :raises SubmissionFailed: On revert (REJECTED) or node trouble (TRANSIENT).
        """
        call = self.contract.functions.createGame(
            match.match_id,
            match.home_team,
            match.away_team,
            match.timestamp // 1000,
        )
        label = f"createGame({match.match_id}, {match.home_team} vs {match.away_team})"
        return await asyncio.to_thread(self._transact, match.match_id, call, label)

    async def fetch_recorded_results(self, from_block: int) -> set[int]:
        """Read match ids that already have a result on-chain.

        :param from_block: First block to scan for GameResultSet events.
        :returns: Set of match ids.
        """
        logs = await asyncio.to_thread(
            self.contract.events.GameResultSet.get_logs, from_block=from_block
        )
        return {int(log["args"]["gameId"]) for log in logs}

    def _tx_defaults(self) -> dict[str, Any]:
        params: dict[str, Any] = {"gasPrice": self.gas_price_fn()}
        sender = self.sender or self.w3.eth.default_account
        if sender:
            params["from"] = sender
        return params

    def _transact(
        self, match_id: int, call: ContractFunction, label: str
    ) -> SubmissionReceipt:
        # Build (and implicitly estimate gas)
        try:
            tx_params = call.build_transaction(self._tx_defaults())
        except ContractLogicError as e:
            raise SubmissionFailed(
                match_id, FailureKind.REJECTED, f"{label} reverted in estimation: {e}"
            ) from e
        except (Web3Exception, OSError, ValueError) as e:
            raise SubmissionFailed(
                match_id, FailureKind.TRANSIENT, f"{label} could not be built: {e}"
            ) from e

        # Sign and send
        try:
            tx_hash = self.w3.eth.send_transaction(tx_params)
        except ContractLogicError as e:
            raise SubmissionFailed(
                match_id, FailureKind.REJECTED, f"{label} rejected by node: {e}"
            ) from e
        except (Web3Exception, OSError, ValueError) as e:
            raise SubmissionFailed(
                match_id, FailureKind.TRANSIENT, f"{label} could not be sent: {e}"
            ) from e

        transaction_id = Web3.to_hex(tx_hash)
        logger.info(f"match {match_id}: sent {label}, tx={transaction_id}")

        # Await inclusion
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.receipt_timeout,
                poll_latency=self.poll_interval,
            )
        except (Web3Exception, OSError) as e:
            raise SubmissionFailed(
                match_id,
                FailureKind.TRANSIENT,
                f"no receipt for {label}: {e}",
                transaction_id=transaction_id,
            ) from e

        if receipt["status"] != 1:
            raise SubmissionFailed(
                match_id,
                FailureKind.REJECTED,
                f"{label} reverted on-chain in block {receipt['blockNumber']}",
                transaction_id=transaction_id,
            )

        block_number = int(receipt["blockNumber"])
        self._await_depth(match_id, block_number, transaction_id)

        return SubmissionReceipt(
            match_id=match_id,
            transaction_id=transaction_id,
            confirmed=True,
            block_number=block_number,
        )

    def _await_depth(self, match_id: int, block_number: int, transaction_id: str) -> None:
        if self.confirmations <= 1:
            return

        target = block_number + self.confirmations - 1
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            try:
                if self.w3.eth.block_number >= target:
                    return
            except (Web3Exception, OSError) as e:
                raise SubmissionFailed(
                    match_id,
                    FailureKind.TRANSIENT,
                    f"cannot read block number: {e}",
                    transaction_id=transaction_id,
                ) from e
            if time.monotonic() >= deadline:
                raise SubmissionFailed(
                    match_id,
                    FailureKind.TRANSIENT,
                    f"{self.confirmations} confirmations not reached in "
                    f"{self.receipt_timeout:.0f}s",
                    transaction_id=transaction_id,
                )
            time.sleep(self.poll_interval)
