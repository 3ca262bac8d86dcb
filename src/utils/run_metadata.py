# ========================
# src/utils/run_metadata.py
# ========================

"""
Run Metadata Management

Keeps a JSON ledger of pipeline runs so every documented row drop can be
traced back to the run that made it.
"""

import json
import logging
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class RunMetadataManager:
    """Manages persistent run metadata storage."""

    def __init__(self, metadata_file: str = "data/run_metadata.json"):
        self.metadata_file = Path(metadata_file)

    @staticmethod
    def new_run_id() -> str:
        return str(uuid.uuid4())

    def record_run(self, run_id: str, status: str, details: Dict[str, Any],
                   error: Optional[str] = None) -> Dict[str, Any]:
        """
        Append one run entry to the ledger.

        Args:
            run_id (str): Identifier of the run
            status (str): 'completed' or 'failed'
            details (dict): Paths, counts and timings for the run
            error (str): Error message for failed runs

        Returns:
            dict: The stored entry
        """
        entry = {
            'run_id': run_id,
            'status': status,
            'recorded_at': datetime.now().isoformat(),
            **details,
        }
        if error is not None:
            entry['error'] = error

        runs = self._read_ledger()
        if runs is None:
            if self._preserve_corrupt_ledger() is None:
                logger.error(f"Run {run_id} not recorded; {self.metadata_file} left untouched")
                return entry
            runs = []
        runs.append(entry)
        self._save_runs(runs)
        logger.info(f"Recorded {status} run {run_id} in {self.metadata_file}")
        return entry

    def load_runs(self) -> List[Dict[str, Any]]:
        """Load all recorded runs; an absent or unreadable ledger reads as empty."""
        return self._read_ledger() or []

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Return the most recent entry recorded for ``run_id``."""
        for entry in reversed(self.load_runs()):
            if entry.get('run_id') == run_id:
                return entry
        return None

    def _read_ledger(self) -> Optional[List[Dict[str, Any]]]:
        """Read the ledger file; None means it exists but cannot be used."""
        if not self.metadata_file.exists():
            return []
        try:
            with open(self.metadata_file, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load run metadata from {self.metadata_file}: {e}")
            return None
        if not isinstance(data, list):
            logger.error(f"Run metadata in {self.metadata_file} is not a list")
            return None
        return data

    def _preserve_corrupt_ledger(self) -> Optional[Path]:
        """Copy an unusable ledger aside before a new one replaces it."""
        stamp = datetime.now().strftime('%Y%m%dT%H%M%S%f')
        backup = self.metadata_file.with_name(f"{self.metadata_file.name}.corrupt-{stamp}")
        try:
            shutil.copyfile(self.metadata_file, backup)
        except OSError as e:
            logger.error(f"Failed to preserve corrupt run metadata: {e}")
            return None
        logger.warning(f"Corrupt run metadata copied to {backup}; starting a new ledger")
        return backup

    def _save_runs(self, runs: List[Dict[str, Any]]) -> None:
        """Save all run metadata to persistent storage."""
        try:
            self.metadata_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.metadata_file, 'w') as f:
                json.dump(runs, f, indent=2, default=str)
            logger.debug(f"Saved run metadata for {len(runs)} runs")
        except OSError as e:
            # ledger write failures do not abort the run
            logger.error(f"Failed to save run metadata: {e}")
