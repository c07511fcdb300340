"""
Mode Controller Module - HackScan Attendance Tracker

This module holds the global scan mode that decides what a badge scan means:
attendance tracking (entry/exit toggle) or meal redemption. The configuration
lives in the same SQLite store as the roster and is read fresh on every scan,
so a change made by an admin is visible to the very next scan.

Features:
- Mode retrieval for every scan request
- Validation of meal mode requirements
- Single guarded write path, last write wins
"""

import json
import logging
import sqlite3
import threading
from typing import Any, Dict, List, Optional, Tuple, Union

from hackscan.modules.scan_models import (
    MEAL_TYPES,
    ModeConfig,
    ScanFailure,
    ScanFailureReason,
    SystemMode,
)


class ModeController:
    """
    Reads and validates writes to the global scan mode configuration.
    """

    def __init__(self, database_manager):
        """
        Initialize the mode controller with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)
        self._write_lock = threading.RLock()

    def get_mode(self) -> ModeConfig:
        """
        Load the current mode configuration.

        Returns:
            ModeConfig: Latest committed configuration
        """
        row = self.db.execute_query(
            "SELECT * FROM system_mode_config WHERE id = 'global'",
            fetch_all=False
        )
        if not row:
            return ModeConfig()
        return ModeConfig.from_row(row)

    def set_mode(self, payload: Dict[str, Any]) -> Union[ModeConfig, ScanFailure]:
        """
        Validate and store a new mode configuration.

        MEAL mode is only accepted with a recognised meal type and at least
        one eligible lab, and every listed lab must exist. ATTENDANCE mode
        drops the meal-specific fields.
        A rejected request leaves the stored configuration untouched.

        Args:
            payload (Dict[str, Any]): Request body with mode, selectedMealType,
                allowedLabIds and allowedScannerIds

        Returns:
            ModeConfig | ScanFailure: Stored configuration or the rejection
        """
        config, failure = self._parse_payload(payload)
        if failure:
            self.logger.warning(f"Mode change rejected: {failure.message}")
            return failure

        try:
            with self._write_lock:
                unknown = self._unknown_lab_ids(config.allowed_lab_ids)
                if unknown:
                    failure = ScanFailure(
                        ScanFailureReason.INVALID_MODE_CONFIG,
                        f"Unknown lab ids: {', '.join(str(lab_id) for lab_id in unknown)}"
                    )
                    self.logger.warning(f"Mode change rejected: {failure.message}")
                    return failure

                self.db.execute_update(
                    """INSERT OR REPLACE INTO system_mode_config
                       (id, mode, selected_meal_type, allowed_lab_ids, allowed_scanner_ids, updated_at)
                       VALUES ('global', ?, ?, ?, ?, CURRENT_TIMESTAMP)""",
                    (config.mode.value, config.selected_meal_type,
                     json.dumps(config.allowed_lab_ids),
                     json.dumps(config.allowed_scanner_ids))
                )
                saved = self.get_mode()
        except sqlite3.Error as e:
            self.logger.error(f"Failed to save scan mode: {str(e)}")
            return ScanFailure(ScanFailureReason.SYSTEM_ERROR, 'Failed to save mode. Please try again.')

        if saved.mode == SystemMode.MEAL:
            self.logger.info(
                f"Scan mode set to MEAL ({saved.selected_meal_type}) for labs {saved.allowed_lab_ids}"
            )
        else:
            self.logger.info("Scan mode set to ATTENDANCE")
        return saved

    def _parse_payload(self, payload) -> Tuple[Optional[ModeConfig], Optional[ScanFailure]]:
        if not isinstance(payload, dict):
            return None, ScanFailure(ScanFailureReason.VALIDATION_ERROR, 'Request body must be a JSON object')

        try:
            mode = SystemMode(payload.get('mode'))
        except ValueError:
            return None, ScanFailure(ScanFailureReason.VALIDATION_ERROR, 'mode must be ATTENDANCE or MEAL')

        lab_ids, error = self._parse_lab_ids(payload.get('allowedLabIds'))
        if error:
            return None, ScanFailure(ScanFailureReason.VALIDATION_ERROR, error)

        scanner_ids = payload.get('allowedScannerIds') or []
        if not isinstance(scanner_ids, list):
            return None, ScanFailure(ScanFailureReason.VALIDATION_ERROR, 'allowedScannerIds must be a list')
        scanner_ids = [str(scanner_id) for scanner_id in scanner_ids if str(scanner_id).strip()]

        if mode == SystemMode.ATTENDANCE:
            return ModeConfig(mode=mode, allowed_scanner_ids=scanner_ids), None

        meal_type = payload.get('selectedMealType')
        if meal_type not in MEAL_TYPES:
            return None, ScanFailure(
                ScanFailureReason.INVALID_MODE_CONFIG,
                f"selectedMealType must be one of {', '.join(MEAL_TYPES)} in MEAL mode"
            )
        if not lab_ids:
            return None, ScanFailure(
                ScanFailureReason.INVALID_MODE_CONFIG,
                'At least one lab must be allowed in MEAL mode'
            )

        return ModeConfig(
            mode=mode,
            selected_meal_type=meal_type,
            allowed_lab_ids=lab_ids,
            allowed_scanner_ids=scanner_ids,
        ), None

    def _unknown_lab_ids(self, lab_ids: List[int]) -> List[int]:
        if not lab_ids:
            return []
        placeholders = ', '.join('?' for _ in lab_ids)
        rows = self.db.execute_query(
            f"SELECT id FROM labs WHERE id IN ({placeholders})",
            tuple(lab_ids)
        )
        known = {row['id'] for row in rows}
        return [lab_id for lab_id in lab_ids if lab_id not in known]

    @staticmethod
    def _parse_lab_ids(raw) -> Tuple[Optional[List[int]], Optional[str]]:
        if raw is None:
            return [], None
        if not isinstance(raw, list):
            return None, 'allowedLabIds must be a list'

        lab_ids = []
        for value in raw:
            if isinstance(value, bool):
                return None, f"Invalid lab id: {value}"
            try:
                lab_id = int(value)
            except (TypeError, ValueError):
                return None, f"Invalid lab id: {value}"
            if lab_id not in lab_ids:
                lab_ids.append(lab_id)
        return lab_ids, None
