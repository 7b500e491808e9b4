"""
vestledger - Persistent Ledger Storage

Saves the vesting ledger together with its token to a JSON state file:
- Atomic writes (temp file + rename)
- SHA-256 checksum verification on load
- Timestamped backups of the previous state
"""

import json
import hashlib
import os
import time
import shutil
import logging
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple

from .access_control import Ownable
from .contracts.erc20 import ERC20Token
from .contracts.token_vesting import TokenVesting
from .vesting.events import EventSink
from .vesting_exceptions import CorruptedDataError, StorageError

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0"


class VestingStorage:
    """
    Ledger persistent storage with data integrity checks

    File layout::

        {"metadata": {"timestamp", "checksum", "version", "schedule_count"},
         "state": {"token": {...}, "vesting": {...}}}
    """

    def __init__(self, state_file: str, max_backups: int = 5):
        """
        Initialize ledger storage

        Args:
            state_file: Path of the JSON state file
            max_backups: Number of previous states to keep (0 disables backups)
        """
        self.state_file = os.path.abspath(state_file)
        self.data_dir = os.path.dirname(self.state_file)
        self.backup_dir = os.path.join(self.data_dir, "backups")
        self.max_backups = max_backups
        self.lock = Lock()

    def exists(self) -> bool:
        return os.path.exists(self.state_file)

    def _calculate_checksum(self, data: str) -> str:
        """
        Calculate SHA-256 checksum of data

        Args:
            data: Data string to checksum

        Returns:
            str: Hex checksum
        """
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    def _verify_checksum(self, data: str, expected_checksum: str) -> bool:
        return self._calculate_checksum(data) == expected_checksum

    @staticmethod
    def _canonical_json(state: Dict[str, Any]) -> str:
        return json.dumps(state, indent=2, sort_keys=True)

    def save(self, state: Dict[str, Any]) -> str:
        """
        Save state to disk with atomic write

        Args:
            state: Dictionary with "token" and "vesting" entries

        Returns:
            str: Checksum of the saved state

        Raises:
            StorageError: If the file cannot be written
        """
        with self.lock:
            try:
                state_json = self._canonical_json(state)
                checksum = self._calculate_checksum(state_json)

                metadata = {
                    "timestamp": time.time(),
                    "checksum": checksum,
                    "version": STATE_VERSION,
                    "schedule_count": len(
                        state.get("vesting", {}).get("store", {}).get("schedules", [])
                    ),
                }
                package_json = json.dumps(
                    {"metadata": metadata, "state": state}, indent=2, sort_keys=True
                )

                os.makedirs(self.data_dir, exist_ok=True)
                if self.max_backups > 0 and os.path.exists(self.state_file):
                    self._create_backup()

                # Atomic write: write to temp file, then rename
                temp_file = self.state_file + ".tmp"
                with open(temp_file, "w") as f:
                    f.write(package_json)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_file, self.state_file)

            except (OSError, TypeError, ValueError) as e:
                logger.error(
                    "Failed to save ledger state",
                    extra={
                        "event": "storage.save_failed",
                        "path": self.state_file,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                raise StorageError(
                    f"Failed to save ledger state: {e}", details={"path": self.state_file}
                ) from e

            logger.info(
                "Ledger state saved",
                extra={
                    "event": "storage.saved",
                    "path": self.state_file,
                    "checksum": checksum[:8],
                },
            )
            return checksum

    def load(self) -> Dict[str, Any]:
        """
        Load state from disk with integrity checks

        Raises:
            StorageError: If no state file exists or it cannot be read
            CorruptedDataError: If the file is not valid JSON or fails its checksum
        """
        with self.lock:
            if not os.path.exists(self.state_file):
                raise StorageError(
                    f"No ledger state found at {self.state_file}",
                    details={"path": self.state_file},
                )

            try:
                with open(self.state_file, "r") as f:
                    package = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(
                    "JSON decode error during state load",
                    extra={"event": "storage.corrupted", "path": self.state_file, "error": str(e)},
                )
                raise CorruptedDataError(f"Ledger state is not valid JSON: {e}") from e
            except OSError as e:
                raise StorageError(f"Failed to read ledger state: {e}") from e

            if not isinstance(package, dict) or "state" not in package:
                raise CorruptedDataError("Ledger state file has no state section")

            metadata = package.get("metadata", {})
            state = package["state"]
            expected_checksum = metadata.get("checksum")
            if not expected_checksum or not self._verify_checksum(
                self._canonical_json(state), expected_checksum
            ):
                logger.error(
                    "Checksum verification failed",
                    extra={"event": "storage.checksum_mismatch", "path": self.state_file},
                )
                raise CorruptedDataError(
                    "Ledger state checksum mismatch", details={"path": self.state_file}
                )

            return state

    def verify_integrity(self) -> Tuple[bool, str]:
        """
        Verify state file integrity without building a ledger

        Returns:
            tuple: (is_valid: bool, message: str)
        """
        try:
            self.load()
        except StorageError as e:
            return False, e.message
        return True, "Integrity verified"

    # ==================== Ledger Helpers ====================

    def save_ledger(self, ledger: TokenVesting) -> str:
        """Persist a ledger and its ERC20 token."""
        token = ledger.token
        if not isinstance(token, ERC20Token):
            raise StorageError("Only ledgers over an ERC20Token can be persisted")
        return self.save({"token": token.to_dict(), "vesting": ledger.to_dict()})

    def load_ledger(
        self,
        event_sink: Optional[EventSink] = None,
        time_provider: Optional[Callable[[], int]] = None,
    ) -> TokenVesting:
        """
        Rebuild a ledger, its token, owner and pause gate from disk.

        Raises:
            StorageError: If the state cannot be read
            CorruptedDataError: If the state is inconsistent
        """
        state = self.load()
        try:
            token = ERC20Token.from_dict(state["token"])
            vesting = state["vesting"]
            authority = Ownable(vesting["authority"])
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptedDataError(f"Ledger state is incomplete: {e}") from e

        return TokenVesting.from_dict(
            vesting,
            token=token,
            authority=authority,
            event_sink=event_sink,
            time_provider=time_provider,
        )

    # ==================== Backups ====================

    def _create_backup(self) -> bool:
        """
        Create timestamped backup of the current state file

        Returns:
            bool: Success
        """
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_file = os.path.join(self.backup_dir, f"vesting_backup_{timestamp}.json")
            shutil.copy2(self.state_file, backup_file)
            self._cleanup_old_backups()
            return True

        except (OSError, shutil.Error) as e:
            logger.warning(
                "Failed to create state backup",
                extra={"event": "storage.backup_failed", "error": str(e)},
            )
            return False

    def _cleanup_old_backups(self) -> None:
        """Remove old backups, keeping only max_backups most recent"""
        backups = self.list_backups()
        for backup in backups[self.max_backups:]:
            try:
                os.remove(backup)
            except OSError as e:
                logger.warning(
                    "Failed to remove old backup",
                    extra={"event": "storage.cleanup_failed", "path": backup, "error": str(e)},
                )

    def list_backups(self) -> List[str]:
        """Backup paths, newest first."""
        if not os.path.isdir(self.backup_dir):
            return []
        backups = [
            os.path.join(self.backup_dir, f)
            for f in os.listdir(self.backup_dir)
            if f.startswith("vesting_backup_") and f.endswith(".json")
        ]
        backups.sort(key=lambda x: os.path.basename(x), reverse=True)
        return backups
