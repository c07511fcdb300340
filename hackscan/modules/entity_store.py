"""
Entity Store Module - HackScan Attendance Tracker

Read and write access to participants, volunteers, scan logs and meal
consumptions as needed by the scan engines. Every write that guards a state
transition is a single conditional statement, so two scanners confirming the
same badge can never both succeed.
"""

import sqlite3
import logging
from typing import Any, Dict, List, Optional

from hackscan.modules.scan_models import (
    ScanAction,
    ScanEvent,
    Subject,
    SubjectType,
)


class MealAlreadyConsumedError(Exception):
    """Raised when a (participant, meal type) pair has already been redeemed."""

    def __init__(self, participant_id, meal_type):
        super().__init__(f"Participant {participant_id} already consumed {meal_type}")
        self.participant_id = participant_id
        self.meal_type = meal_type


class SubjectNotFoundError(Exception):
    """Raised when a write targets a subject that no longer exists."""


SUBJECT_TABLES = {
    SubjectType.PARTICIPANT: 'participants',
    SubjectType.VOLUNTEER: 'volunteers',
}


def hash_in_use(cursor, qr_hash: str) -> bool:
    """Check a badge token against both participants and volunteers."""
    cursor.execute(
        """SELECT 1 FROM participants WHERE qr_code_hash = ?
           UNION ALL
           SELECT 1 FROM volunteers WHERE qr_code_hash = ?""",
        (qr_hash, qr_hash)
    )
    return cursor.fetchone() is not None


def allocate_qr_hash(cursor, qr_generator, kind: str, identifier) -> str:
    """Generate a badge token not used by any participant or volunteer."""
    while True:
        qr_hash = qr_generator.generate_qr_hash(kind, identifier)
        if not hash_in_use(cursor, qr_hash):
            return qr_hash


class EntityStore:
    """
    Subject lookups and atomic state writes backing the scan engines.
    """

    def __init__(self, database_manager):
        """
        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def find_subject_by_hash(self, qr_hash: str) -> Optional[Subject]:
        """
        Resolve a QR hash to a participant, falling back to volunteers.

        Args:
            qr_hash (str): Scanned QR token

        Returns:
            Subject: Matching subject or None
        """
        participant = self.db.execute_query(
            "SELECT * FROM participants WHERE qr_code_hash = ?",
            (qr_hash,),
            fetch_all=False
        )
        if participant:
            return Subject.from_participant_row(
                participant, self.get_consumed_meals(participant['id'])
            )

        volunteer = self.db.execute_query(
            "SELECT * FROM volunteers WHERE qr_code_hash = ?",
            (qr_hash,),
            fetch_all=False
        )
        if volunteer:
            return Subject.from_volunteer_row(volunteer)

        return None

    def get_subject(self, subject_type: SubjectType, subject_id: int) -> Optional[Subject]:
        table = SUBJECT_TABLES[subject_type]
        row = self.db.execute_query(
            f"SELECT * FROM {table} WHERE id = ?",
            (subject_id,),
            fetch_all=False
        )
        if not row:
            return None
        if subject_type == SubjectType.PARTICIPANT:
            return Subject.from_participant_row(row, self.get_consumed_meals(subject_id))
        return Subject.from_volunteer_row(row)

    def get_consumed_meals(self, participant_id: int) -> List[str]:
        rows = self.db.execute_query(
            "SELECT meal_type FROM meal_consumptions WHERE participant_id = ?",
            (participant_id,)
        )
        return [row['meal_type'] for row in rows]

    def set_checked_in(self, subject: Subject, checked_in: bool,
                       scanned_by: str) -> Optional[Subject]:
        """
        Flip a subject's checked-in flag and log the scan in one transaction.

        The update only matches while the row still holds the opposite state,
        so a concurrent or repeated confirmation updates zero rows.

        Args:
            subject (Subject): Subject to update
            checked_in (bool): Target checked-in state
            scanned_by (str): Scanner operator id

        Returns:
            Subject: Updated subject, or None if the row was already in the target state

        Raises:
            SubjectNotFoundError: The subject was deleted after it was looked up
        """
        table = SUBJECT_TABLES[subject.subject_type]
        if checked_in:
            query = f"""UPDATE {table}
                        SET is_checked_in = 1, last_check_in = CURRENT_TIMESTAMP
                        WHERE id = ? AND is_checked_in = 0"""
        else:
            query = f"""UPDATE {table}
                        SET is_checked_in = 0, last_check_in = NULL
                        WHERE id = ? AND is_checked_in = 1"""

        event = ScanEvent(
            subject_type=subject.subject_type,
            subject_id=subject.id,
            scanned_by=scanned_by,
            scan_type=ScanAction.ENTRY if checked_in else ScanAction.EXIT,
        )

        with self.db.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(query, (subject.id,))
            if cursor.rowcount == 0:
                cursor.execute(f"SELECT 1 FROM {table} WHERE id = ?", (subject.id,))
                if cursor.fetchone() is None:
                    raise SubjectNotFoundError(
                        f"{subject.subject_type.value.capitalize()} {subject.id} not found"
                    )
                return None
            self.append_scan_event(cursor, event)

        return self.get_subject(subject.subject_type, subject.id)

    def append_scan_event(self, cursor, event: ScanEvent) -> int:
        """
        Insert a scan log row using the caller's transaction cursor.

        Returns:
            int: New scan log ID
        """
        participant_id = event.subject_id if event.subject_type == SubjectType.PARTICIPANT else None
        volunteer_id = event.subject_id if event.subject_type == SubjectType.VOLUNTEER else None
        cursor.execute(
            """INSERT INTO scan_logs (participant_id, volunteer_id, subject_type, scanned_by, scan_type)
               VALUES (?, ?, ?, ?, ?)""",
            (participant_id, volunteer_id, event.subject_type.value,
             event.scanned_by, event.scan_type.value)
        )
        return cursor.lastrowid

    def record_meal_consumption(self, participant_id: int, meal_type: str) -> Dict[str, Any]:
        """
        Insert a meal consumption row.

        Args:
            participant_id (int): Participant database ID
            meal_type (str): Meal type being redeemed

        Returns:
            Dict[str, Any]: The inserted row

        Raises:
            MealAlreadyConsumedError: The pair already exists
            SubjectNotFoundError: The participant was deleted
        """
        try:
            consumption_id = self.db.execute_update(
                "INSERT INTO meal_consumptions (participant_id, meal_type) VALUES (?, ?)",
                (participant_id, meal_type)
            )
        except sqlite3.IntegrityError as e:
            if 'UNIQUE' in str(e).upper():
                raise MealAlreadyConsumedError(participant_id, meal_type) from e
            raise SubjectNotFoundError(f"Participant {participant_id} not found") from e

        return self.db.execute_query(
            "SELECT * FROM meal_consumptions WHERE id = ?",
            (consumption_id,),
            fetch_all=False
        )
