"""ProcessedMatchesLedger: Match ids already settled on-chain.

The ledger is the at-most-once guard of the monitor loop: a match id is added
only after its settlement transaction is confirmed, and never removed.

By default the ledger lives in memory and is lost on restart; the settlement
contract's own rejection of duplicate results is then the only guard. When a
path is given, the ledger is mirrored to a JSON file that is rewritten
atomically after every change and loaded on startup.

The ledger also tracks games created on-chain, in a separate set.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessedMatchesLedger:
    """Set of submitted (and created) match ids with optional file persistence.

    :ivar path: Optional JSON file backing the ledger.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize the ledger, loading it from disk if a path is given.

        :param path: Optional JSON file path. Missing files start empty.
        :raises ValueError: If the file exists but cannot be parsed.
        """
        self.path = Path(path) if path else None
        self._submitted: set[int] = set()
        self._created: set[int] = set()

        if self.path is not None and self.path.exists():
            self._load(self.path)

    def __contains__(self, match_id: object) -> bool:
        return match_id in self._submitted

    def __len__(self) -> int:
        return len(self._submitted)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._submitted))

    def add(self, match_id: int) -> None:
        """Record a confirmed settlement.

        :param match_id: Canonical match id.
        """
        if match_id in self._submitted:
            return
        self._submitted.add(match_id)
        self._save()

    def add_many(self, match_ids: Iterable[int]) -> int:
        """Record several confirmed settlements at once.

        :param match_ids: Canonical match ids.
        :returns: Number of ids that were not already recorded.
        """
        new_ids = set(match_ids) - self._submitted
        if new_ids:
            self._submitted.update(new_ids)
            self._save()
        return len(new_ids)

    def is_created(self, match_id: int) -> bool:
        """Check if the game has been created on-chain by this oracle."""
        return match_id in self._created

    def mark_created(self, match_id: int) -> None:
        """Record a confirmed game creation.

        :param match_id: Canonical match id.
        """
        if match_id in self._created:
            return
        self._created.add(match_id)
        self._save()

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text())
            self._submitted = {int(m) for m in data.get("submitted", [])}
            self._created = {int(m) for m in data.get("created", [])}
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise ValueError(f"Cannot load ledger from {path}: {e}") from e
        logger.info(
            f"Loaded ledger from {path}: {len(self._submitted)} submitted, "
            f"{len(self._created)} created"
        )

    def _save(self) -> None:
        if self.path is None:
            return

        payload = {
            "submitted": sorted(self._submitted),
            "created": sorted(self._created),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # The file on disk is always either the old or the new ledger
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as file:
                json.dump(payload, file)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
