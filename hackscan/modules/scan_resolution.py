"""
Scan Resolution Module - HackScan Attendance Tracker

This module turns a scanned QR token into the action the scan would perform,
without writing anything, so the operator can be shown a confirmation prompt
first. Resolving the same token any number of times never changes state.

Features:
- Participant-first lookup, then volunteers
- Entry/exit proposal from the subject's attendance state
- Meal eligibility checks (lab, scanner, prior consumption)
"""

import logging
import sqlite3
from typing import Optional, Union

from hackscan.modules.scan_models import (
    ModeConfig,
    ResolvedScan,
    ScanAction,
    ScanFailure,
    ScanFailureReason,
    Subject,
    SubjectType,
    SystemMode,
    proposed_attendance_action,
)


def normalize_token(qr_hash) -> str:
    """Return the trimmed token, or an empty string if it is unusable."""
    if not isinstance(qr_hash, str):
        return ''
    return qr_hash.strip()


def meal_eligibility_failure(subject: Subject, config: ModeConfig, scanner_id: Optional[str],
                             meal_type: str) -> Optional[ScanFailure]:
    """
    Check whether a subject may redeem a meal under the given configuration.

    Args:
        subject (Subject): Scanned subject
        config (ModeConfig): Current mode configuration
        scanner_id (str): Operator id of the scanning device
        meal_type (str): Meal being redeemed

    Returns:
        ScanFailure: The first failed check, or None if the meal may be redeemed
    """
    if subject.subject_type != SubjectType.PARTICIPANT:
        return ScanFailure(ScanFailureReason.VOLUNTEER_NOT_ELIGIBLE)

    if not config.scanner_is_allowed(scanner_id):
        return ScanFailure(ScanFailureReason.SCANNER_NOT_ALLOWED)

    if not config.lab_is_eligible(subject.lab_id):
        return ScanFailure(
            ScanFailureReason.LAB_NOT_ELIGIBLE,
            f"{subject.display_name}'s lab is not eligible for {meal_type}"
        )

    if meal_type in subject.consumed_meals:
        return ScanFailure(
            ScanFailureReason.ALREADY_CONSUMED,
            f"{subject.display_name} already had {meal_type}"
        )

    return None


class ScanResolver:
    """
    Computes the proposed action for a scanned badge.
    """

    def __init__(self, entity_store, mode_controller):
        """
        Args:
            entity_store: Entity store instance
            mode_controller: Mode controller instance
        """
        self.store = entity_store
        self.modes = mode_controller
        self.logger = logging.getLogger(__name__)

    def resolve(self, qr_hash: str, scanner_id: Optional[str] = None) -> Union[ResolvedScan, ScanFailure]:
        """
        Resolve a QR token to a subject and its proposed action.

        In ATTENDANCE mode the action toggles: ENTRY when the subject is out,
        EXIT when in. In MEAL mode only eligible participants get a CONSUME
        proposal for the selected meal.

        Args:
            qr_hash (str): Scanned QR token
            scanner_id (str): Operator id of the scanning device

        Returns:
            ResolvedScan | ScanFailure: Proposal or the reason there is none
        """
        token = normalize_token(qr_hash)
        if not token:
            return ScanFailure(ScanFailureReason.VALIDATION_ERROR, 'QR hash is required')

        try:
            subject = self.store.find_subject_by_hash(token)
            if subject is None:
                self.logger.info("Scan preview for unknown QR hash")
                return ScanFailure(ScanFailureReason.NOT_FOUND)

            config = self.modes.get_mode()
        except sqlite3.Error as e:
            self.logger.error(f"Scan preview failed: {str(e)}")
            return ScanFailure(ScanFailureReason.SYSTEM_ERROR)

        if config.mode == SystemMode.ATTENDANCE:
            return ResolvedScan(
                subject=subject,
                proposed_action=proposed_attendance_action(subject.state),
                mode=config.mode,
            )

        meal_type = config.selected_meal_type
        failure = meal_eligibility_failure(subject, config, scanner_id, meal_type)
        if failure:
            self.logger.info(
                f"Meal preview rejected for {subject.subject_type.value} {subject.id}: {failure.reason}"
            )
            return failure

        return ResolvedScan(
            subject=subject,
            proposed_action=ScanAction.CONSUME,
            mode=config.mode,
            meal_type=meal_type,
        )
