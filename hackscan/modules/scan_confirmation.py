"""
Scan Confirmation Module - HackScan Attendance Tracker

This module commits the action an operator accepted after a scan preview.
The caller names the action explicitly; it is never re-derived, so the write
always matches what was shown on screen. Each successful confirmation creates
exactly one scan log row (entry/exit) or one meal consumption row, and a
duplicate submission is rejected rather than retried.

Features:
- Entry/exit through a conditional update on the subject row
- Meal redemption guarded by the (participant, meal type) unique index
- Re-validation of meal eligibility at confirm time
- Operator-facing result messages
"""

import logging
import sqlite3
from typing import Optional, Union

from hackscan.modules.entity_store import MealAlreadyConsumedError, SubjectNotFoundError
from hackscan.modules.scan_models import (
    MEAL_TYPES,
    REJECTED_ATTENDANCE_REASONS,
    AttendanceState,
    ScanAction,
    ScanFailure,
    ScanFailureReason,
    ScanResult,
    Subject,
    SubjectType,
    SystemMode,
    next_attendance_state,
)
from hackscan.modules.scan_resolution import meal_eligibility_failure, normalize_token


class ScanConfirmer:
    """
    Performs confirmed scan transitions exactly once.
    """

    def __init__(self, entity_store, mode_controller):
        """
        Initialize the confirmer.

        Args:
            entity_store: Entity store instance
            mode_controller: Mode controller instance
        """
        self.store = entity_store
        self.modes = mode_controller
        self.logger = logging.getLogger(__name__)

    def confirm(self, qr_hash: str, action: str, meal_type: Optional[str] = None,
                actor_id: str = 'unknown') -> Union[ScanResult, ScanFailure]:
        """
        Commit a previewed scan.

        Args:
            qr_hash (str): Scanned QR token
            action (str): ENTRY, EXIT or CONSUME
            meal_type (str): Meal for CONSUME; defaults to the selected meal
            actor_id (str): Operator id of the scanning device

        Returns:
            ScanResult | ScanFailure: Committed result or the rejection
        """
        token = normalize_token(qr_hash)
        if not token:
            return ScanFailure(ScanFailureReason.VALIDATION_ERROR, 'QR hash is required')

        try:
            scan_action = ScanAction(action)
        except ValueError:
            return ScanFailure(
                ScanFailureReason.VALIDATION_ERROR,
                'action must be ENTRY, EXIT or CONSUME'
            )

        try:
            subject = self.store.find_subject_by_hash(token)
            if subject is None:
                self.logger.info("Scan confirmation for unknown QR hash")
                return ScanFailure(ScanFailureReason.NOT_FOUND)

            if scan_action == ScanAction.CONSUME:
                return self._confirm_meal(subject, meal_type, actor_id)
            return self._confirm_attendance(subject, scan_action, actor_id)

        except sqlite3.Error as e:
            self.logger.error(f"Scan confirmation failed: {str(e)}")
            return ScanFailure(ScanFailureReason.SYSTEM_ERROR)

    def _confirm_attendance(self, subject: Subject, action: ScanAction,
                            actor_id: str) -> Union[ScanResult, ScanFailure]:
        target = next_attendance_state(subject.state, action)
        if target is None:
            return self._attendance_rejected(subject, action)

        try:
            updated = self.store.set_checked_in(
                subject, target == AttendanceState.CHECKED_IN, actor_id
            )
        except SubjectNotFoundError:
            self.logger.warning(
                f"{subject.subject_type.value.capitalize()} {subject.id} deleted before {action.value} was recorded"
            )
            return ScanFailure(ScanFailureReason.NOT_FOUND)
        if updated is None:
            # Another confirmation for this subject committed first
            return self._attendance_rejected(subject, action)

        verb = 'Checked in' if action == ScanAction.ENTRY else 'Checked out'
        self.logger.info(
            f"{verb} {subject.subject_type.value} {subject.id} (scanned by {actor_id})"
        )
        return ScanResult(
            subject=updated,
            action=action,
            message=f"{verb} {updated.display_name}",
        )

    def _attendance_rejected(self, subject: Subject, action: ScanAction) -> ScanFailure:
        reason = REJECTED_ATTENDANCE_REASONS[action]
        state = 'checked in' if action == ScanAction.ENTRY else 'checked out'
        self.logger.warning(
            f"Rejected {action.value} for {subject.subject_type.value} {subject.id}: {reason}"
        )
        return ScanFailure(reason, f"{subject.display_name} is already {state}")

    def _confirm_meal(self, subject: Subject, meal_type: Optional[str],
                      actor_id: str) -> Union[ScanResult, ScanFailure]:
        config = self.modes.get_mode()
        if config.mode != SystemMode.MEAL:
            return ScanFailure(ScanFailureReason.MODE_MISMATCH)

        meal_type = meal_type or config.selected_meal_type
        if meal_type not in MEAL_TYPES:
            return ScanFailure(
                ScanFailureReason.VALIDATION_ERROR,
                f"mealType must be one of {', '.join(MEAL_TYPES)}"
            )
        if meal_type != config.selected_meal_type:
            return ScanFailure(
                ScanFailureReason.MODE_MISMATCH,
                f"{meal_type} is not being served right now"
            )

        failure = meal_eligibility_failure(subject, config, actor_id, meal_type)
        if failure:
            self.logger.warning(
                f"Rejected {meal_type} for {subject.subject_type.value} {subject.id}: {failure.reason}"
            )
            return failure

        try:
            self.store.record_meal_consumption(subject.id, meal_type)
        except MealAlreadyConsumedError:
            self.logger.warning(f"Rejected {meal_type} for participant {subject.id}: already consumed")
            return ScanFailure(
                ScanFailureReason.ALREADY_CONSUMED,
                f"{subject.display_name} already had {meal_type}"
            )
        except SubjectNotFoundError:
            return ScanFailure(ScanFailureReason.NOT_FOUND)

        updated = self.store.get_subject(SubjectType.PARTICIPANT, subject.id) or subject
        self.logger.info(f"{meal_type} consumed by participant {subject.id} (scanned by {actor_id})")
        return ScanResult(
            subject=updated,
            action=ScanAction.CONSUME,
            message=f"{meal_type} consumed",
            meal_type=meal_type,
        )
