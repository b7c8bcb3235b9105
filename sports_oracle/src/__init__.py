"""
Sports Result Oracle - Off-Chain Consensus Module

This module reports final match results to the on-chain betting pool:
- MatchResult: Canonical match record shared by all providers
- ResultValidator: Quorum agreement on the final score
- SettlementSubmitter: Transaction lifecycle against the settlement contract
- ProcessedMatchesLedger: At-most-once guard for settled matches
- OracleMonitor: Main orchestrator for the monitoring loop
- providers: Modular sports-data provider clients
"""

from .BackoffTracker import BackoffStatus, BackoffTracker
from .MatchResult import MatchResult, MatchStatus, Winner, canonical_match_id, derive_winner
from .OracleConfig import OracleConfig
from .OracleMonitor import CycleSummary, MatchState, OracleMonitor
from .ProcessedMatchesLedger import ProcessedMatchesLedger
from .ResultValidator import ConsensusOutcome, ResultValidator
from .SettlementSubmitter import (
    FailureKind,
    SettlementSubmitter,
    SubmissionFailed,
    SubmissionReceipt,
)

__all__ = [
    "BackoffStatus",
    "BackoffTracker",
    "ConsensusOutcome",
    "CycleSummary",
    "FailureKind",
    "MatchResult",
    "MatchState",
    "MatchStatus",
    "OracleConfig",
    "OracleMonitor",
    "ProcessedMatchesLedger",
    "ResultValidator",
    "SettlementSubmitter",
    "SubmissionFailed",
    "SubmissionReceipt",
    "Winner",
    "canonical_match_id",
    "derive_winner",
]
