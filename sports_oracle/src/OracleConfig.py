"""OracleConfig: Explicit configuration passed into the monitor and submitter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_PROVIDERS = ("football_data", "api_football", "sportsdataio")


@dataclass(frozen=True)
class OracleConfig:
    """All recognized options of the sports oracle.

    :ivar providers: Names of the provider clients to poll.
    :ivar api_keys: Provider name to API key.
    :ivar base_urls: Provider name to base URL override.
    :ivar provider_options: Provider name to extra constructor options.
    :ivar confirmation_threshold: Minimum agreeing providers.
    :ivar cycle_interval: Seconds between the end of one cycle and the next.
    :ivar retry_attempts: Attempts per provider call.
    :ivar retry_delay: Seconds between provider attempts.
    :ivar request_timeout: HTTP timeout per provider request.
    :ivar fetch_timeout: Upper bound per provider call, retries included.
    :ivar lookback_days: Past UTC days included in the live window.
    :ivar rpc_url: JSON-RPC endpoint of the chain.
    :ivar contract_address: Settlement contract address.
    :ivar private_key: Oracle signing key (never logged).
    :ivar confirmations: Confirmation depth before a submission counts.
    :ivar receipt_timeout: Seconds to wait for a transaction receipt.
    :ivar ledger_path: Optional JSON file persisting the ledger.
    :ivar seed_from_block: Optional block to seed the ledger from chain events.
    :ivar create_games: Register upcoming matches with the contract.
    """

    providers: tuple[str, ...] = DEFAULT_PROVIDERS
    api_keys: dict[str, str] = field(default_factory=dict, repr=False)
    base_urls: dict[str, str] = field(default_factory=dict)
    provider_options: dict[str, dict[str, Any]] = field(default_factory=dict)
    confirmation_threshold: int = 2
    cycle_interval: float = 60.0
    retry_attempts: int = 3
    retry_delay: float = 5.0
    request_timeout: float = 10.0
    fetch_timeout: float = 60.0
    lookback_days: int = 1
    rpc_url: str = ""
    contract_address: str = ""
    private_key: str = field(default="", repr=False)
    confirmations: int = 1
    receipt_timeout: float = 120.0
    ledger_path: str | None = None
    seed_from_block: int | None = None
    create_games: bool = False

    def validate(self) -> None:
        """Check required values and ranges.

        :raises ValueError: Listing every problem found.
        """
        problems: list[str] = []

        if not self.providers:
            problems.append("at least one provider must be configured")
        missing_keys = [p for p in self.providers if not self.api_keys.get(p)]
        if missing_keys:
            problems.append(f"missing API keys for providers: {missing_keys}")
        if self.confirmation_threshold < 1:
            problems.append("confirmation threshold must be at least 1")
        if self.providers and self.confirmation_threshold > len(self.providers):
            problems.append(
                f"confirmation threshold {self.confirmation_threshold} exceeds "
                f"the {len(self.providers)} configured providers"
            )
        if self.cycle_interval < 1:
            problems.append("cycle interval must be at least 1 second")
        if self.retry_attempts < 1:
            problems.append("retry attempts must be at least 1")
        if self.retry_delay < 0:
            problems.append("retry delay must not be negative")
        if self.lookback_days < 0:
            problems.append("lookback days must not be negative")
        if self.confirmations < 1:
            problems.append("confirmations must be at least 1")
        if not self.rpc_url:
            problems.append("RPC URL is required")
        if not self.contract_address:
            problems.append("settlement contract address is required")
        if not self.private_key:
            problems.append("oracle private key is required")
        if self.seed_from_block is not None and self.seed_from_block < 0:
            problems.append("seed block must not be negative")

        if problems:
            raise ValueError("; ".join(problems))
