#!/usr/bin/env python3
"""Sports Result Oracle.

Polls several sports-data providers, waits until a quorum of them agrees on
the final score of a match and reports that result to the on-chain betting
pool exactly once.

Configure with CLI flags or env vars; see --help.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from .src.OracleConfig import DEFAULT_PROVIDERS, OracleConfig
from .src.OracleMonitor import OracleMonitor
from .src.providers import get_available_providers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_keyed_list(value: str | None) -> dict[str, str]:
    """Parse comma-separated name=value pairs into a dictionary.

    Format: source1=value1,source2=value2
    Example: football_data=abc123,api_football=xyz789

    :param value: Comma-separated string.
    :returns: Dict mapping lowercased provider names to values.
    """
    if not value:
        return {}

    parsed = {}
    for item in value.split(","):
        item = item.strip()
        if "=" in item:
            name, item_value = item.split("=", 1)
            parsed[name.strip().lower()] = item_value.strip()
    return parsed


def parse_env_prefixed(prefixes: list[str]) -> dict[str, str]:
    """Collect per-provider values from individual environment variables.

    For prefix "API_KEY_": API_KEY_FOOTBALL_DATA=... -> {"football_data": ...}

    :param prefixes: Environment variable prefixes to look for.
    :returns: Dict mapping provider names to values.
    """
    values = {}
    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                values[key[len(prefix):].lower()] = value
                break
    return values


def env_flag(name: str) -> bool:
    """Read a boolean environment variable ("1", "true", "yes", "on")."""
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser; every default comes from the environment.

    Env values go through each option's ``type`` like CLI values, so a bad
    value is a usage error.
    """
    available = get_available_providers()

    parser = argparse.ArgumentParser(
        description="Sports Result Oracle: multi-provider consensus settlement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available providers:
  {', '.join(available)}

Examples:
  # Two-of-three consensus against a local node
  ORACLE_PRIVATE_KEY=0x... python -m sports_oracle.main \\
      --rpc-url http://localhost:8545 --contract-address 0x... \\
      --api-keys football_data=k1,api_football=k2,sportsdataio=k3

  # Persist the ledger and recover it from chain events on restart
  python -m sports_oracle.main --ledger-path /var/lib/oracle/ledger.json \\
      --seed-from-block 1200000

Environment variables (CLI args take precedence):
  PROVIDERS, CONFIRMATION_THRESHOLD, CYCLE_INTERVAL, RETRY_ATTEMPTS,
  RETRY_DELAY, REQUEST_TIMEOUT, FETCH_TIMEOUT, LOOKBACK_DAYS, RPC_URL,
  BETTING_POOL_ADDRESS, ORACLE_PRIVATE_KEY (or PRIVATE_KEY), CONFIRMATIONS,
  RECEIPT_TIMEOUT, LEDGER_PATH, SEED_FROM_BLOCK, CREATE_GAMES,
  SPORTSDATAIO_COMPETITION, API_KEYS, API_KEY_<PROVIDER>, BASE_URLS,
  BASE_URL_<PROVIDER>
""",
    )

    parser.add_argument(
        "--providers",
        type=str,
        help=f"Comma-separated providers. Available: {', '.join(available)}",
        default=os.environ.get("PROVIDERS") or ",".join(DEFAULT_PROVIDERS),
    )
    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., football_data=abc,api_football=xyz)",
        default=os.environ.get("API_KEYS"),
    )
    parser.add_argument(
        "--base-urls",
        dest="base_urls",
        type=str,
        help="Comma-separated base URL overrides (e.g., football_data=http://mock:8080)",
        default=os.environ.get("BASE_URLS"),
    )
    parser.add_argument(
        "--threshold",
        type=int,
        help="Minimum agreeing providers for a result (default: 2)",
        default=os.environ.get("CONFIRMATION_THRESHOLD") or "2",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between monitor cycles (minimum: 1, default: 60)",
        default=os.environ.get("CYCLE_INTERVAL") or "60",
    )
    parser.add_argument(
        "--retry-attempts",
        dest="retry_attempts",
        type=int,
        help="Attempts per provider call (default: 3)",
        default=os.environ.get("RETRY_ATTEMPTS") or "3",
    )
    parser.add_argument(
        "--retry-delay",
        dest="retry_delay",
        type=float,
        help="Seconds between provider attempts (default: 5)",
        default=os.environ.get("RETRY_DELAY") or "5",
    )
    parser.add_argument(
        "--request-timeout",
        dest="request_timeout",
        type=float,
        help="HTTP timeout per provider request in seconds (default: 10)",
        default=os.environ.get("REQUEST_TIMEOUT") or "10",
    )
    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Upper bound per provider call incl. retries in seconds (default: 60)",
        default=os.environ.get("FETCH_TIMEOUT") or "60",
    )
    parser.add_argument(
        "--lookback-days",
        dest="lookback_days",
        type=int,
        help="Past UTC days included in the live window (default: 1)",
        default=os.environ.get("LOOKBACK_DAYS") or "1",
    )
    parser.add_argument(
        "--competition",
        type=str,
        help="SportsDataIO competition key (default: EPL)",
        default=os.environ.get("SPORTSDATAIO_COMPETITION") or "EPL",
    )
    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="JSON-RPC endpoint of the chain (or 'localhost')",
        default=os.environ.get("RPC_URL"),
    )
    parser.add_argument(
        "--contract-address",
        dest="contract_address",
        type=str,
        help="Address of the BettingPool settlement contract",
        default=os.environ.get("BETTING_POOL_ADDRESS"),
    )
    parser.add_argument(
        "--confirmations",
        type=int,
        help="Blocks a settlement must be buried under (default: 1 = included)",
        default=os.environ.get("CONFIRMATIONS") or "1",
    )
    parser.add_argument(
        "--receipt-timeout",
        dest="receipt_timeout",
        type=float,
        help="Seconds to wait for a transaction receipt (default: 120)",
        default=os.environ.get("RECEIPT_TIMEOUT") or "120",
    )
    parser.add_argument(
        "--ledger-path",
        dest="ledger_path",
        type=str,
        help="JSON file persisting settled match ids (default: in-memory only)",
        default=os.environ.get("LEDGER_PATH"),
    )
    parser.add_argument(
        "--seed-from-block",
        dest="seed_from_block",
        type=int,
        help="Seed the ledger from GameResultSet events starting at this block",
        default=os.environ.get("SEED_FROM_BLOCK") or None,
    )
    parser.add_argument(
        "--create-games",
        dest="create_games",
        action=argparse.BooleanOptionalAction,
        help="Register upcoming matches with the contract via createGame",
        default=env_flag("CREATE_GAMES"),
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser


def build_config(args: argparse.Namespace, parser: argparse.ArgumentParser) -> OracleConfig:
    """Turn parsed arguments into a validated OracleConfig.

    Exits through parser.error() on any invalid or missing value.
    """
    available = get_available_providers()
    providers = tuple(p.strip().lower() for p in args.providers.split(",") if p.strip())

    invalid = [p for p in providers if p not in available]
    if invalid:
        parser.error(f"Unknown providers: {invalid}. Available: {', '.join(available)}")

    # Parse API keys and base URLs (CLI + environment)
    api_keys = parse_env_prefixed(["API_KEY_", "APIKEY_"])
    api_keys.update(parse_keyed_list(args.api_keys))
    base_urls = parse_env_prefixed(["BASE_URL_"])
    base_urls.update(parse_keyed_list(args.base_urls))

    config = OracleConfig(
        providers=providers,
        api_keys=api_keys,
        base_urls=base_urls,
        provider_options={"sportsdataio": {"competition": args.competition}},
        confirmation_threshold=args.threshold,
        cycle_interval=args.interval,
        retry_attempts=args.retry_attempts,
        retry_delay=args.retry_delay,
        request_timeout=args.request_timeout,
        fetch_timeout=args.fetch_timeout,
        lookback_days=args.lookback_days,
        rpc_url=args.rpc_url or "",
        contract_address=args.contract_address or "",
        private_key=os.environ.get("ORACLE_PRIVATE_KEY") or os.environ.get("PRIVATE_KEY") or "",
        confirmations=args.confirmations,
        receipt_timeout=args.receipt_timeout,
        ledger_path=args.ledger_path,
        seed_from_block=args.seed_from_block,
        create_games=args.create_games,
    )

    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))
    return config


def log_config(config: OracleConfig) -> None:
    """Print the startup banner (never the key material)."""
    logger.info("=" * 60)
    logger.info("Sports Result Oracle - Multi-Provider Consensus")
    logger.info("=" * 60)
    logger.info(f"RPC:               {config.rpc_url}")
    logger.info(f"Contract:          {config.contract_address}")
    logger.info(f"Providers:         {', '.join(config.providers)}")
    logger.info(f"Threshold:         {config.confirmation_threshold}")
    logger.info(f"Cycle Interval:    {config.cycle_interval}s")
    logger.info(f"Retries:           {config.retry_attempts} x {config.retry_delay}s")
    logger.info(f"Request Timeout:   {config.request_timeout}s")
    logger.info(f"Confirmations:     {config.confirmations}")
    logger.info(f"Ledger:            {config.ledger_path or 'in-memory'}")
    if config.seed_from_block is not None:
        logger.info(f"Seed From Block:   {config.seed_from_block}")
    logger.info(f"Create Games:      {'yes' if config.create_games else 'no'}")
    if config.base_urls:
        logger.info(f"Base URL Overrides: {', '.join(config.base_urls.keys())}")
    logger.info("=" * 60)


async def run(monitor: OracleMonitor) -> None:
    """Run the monitor, stopping gracefully on SIGINT / SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, monitor.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass
    await monitor.start()


def main() -> None:
    """Main entry point for the Sports Result Oracle CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = build_config(args, parser)
    log_config(config)

    try:
        monitor = OracleMonitor.from_config(config)
        asyncio.run(run(monitor))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
