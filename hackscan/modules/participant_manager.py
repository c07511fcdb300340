"""
Participant Manager Module - HackScan Attendance Tracker

This module handles participant administration for the attendance tracker.
Participants belong to one team and one lab and receive a badge token when
they are registered.

Features:
- Participant registration with badge token allocation
- Participant listing with team, lab and meal details
- Lab reassignment
- Admin checkout of one or all participants
- Participant removal (scan logs and meals cascade)
"""

import logging
import re
import sqlite3
from typing import Any, Dict, List, Optional

from hackscan.modules.entity_store import allocate_qr_hash

EMAIL_PATTERN = re.compile(r'^[\w\.\+-]+@[\w\.-]+\.\w+$')


class ParticipantManager:
    """
    Participant administration for the attendance tracker.
    """

    def __init__(self, database_manager, qr_generator):
        """
        Initialize the participant manager.

        Args:
            database_manager: Database manager instance
            qr_generator: QR generator used for badge tokens
        """
        self.db = database_manager
        self.qr_generator = qr_generator
        self.logger = logging.getLogger(__name__)

    def create_participant(self, participant_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a participant and allocate their badge token.

        Args:
            participant_data (Dict[str, Any]): name, email, teamId and labId

        Returns:
            Dict[str, Any]: Creation result
        """
        name = str(participant_data.get('name') or '').strip()
        email = str(participant_data.get('email') or '').strip().lower()
        team_id = participant_data.get('teamId')
        lab_id = participant_data.get('labId')

        if not name or not email or team_id is None or lab_id is None:
            return {
                'success': False,
                'error': 'name, email, teamId and labId are required'
            }

        if not EMAIL_PATTERN.match(email):
            return {'success': False, 'error': 'Invalid email format'}

        try:
            with self.db.transaction() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT id FROM teams WHERE id = ?", (team_id,))
                if not cursor.fetchone():
                    return {'success': False, 'error': 'Team not found'}

                cursor.execute("SELECT id FROM labs WHERE id = ?", (lab_id,))
                if not cursor.fetchone():
                    return {'success': False, 'error': 'Lab not found'}

                cursor.execute("SELECT id FROM participants WHERE email = ?", (email,))
                if cursor.fetchone():
                    return {'success': False, 'error': 'Email address already exists'}

                qr_hash = allocate_qr_hash(cursor, self.qr_generator, 'participant', email)
                cursor.execute(
                    """INSERT INTO participants (name, email, team_id, lab_id, qr_code_hash)
                       VALUES (?, ?, ?, ?, ?)""",
                    (name, email, team_id, lab_id, qr_hash)
                )
                participant_id = cursor.lastrowid

            self.logger.info(f"Participant created: {email} (ID: {participant_id})")
            return {
                'success': True,
                'participant': self.get_participant(participant_id),
                'message': 'Participant created successfully'
            }

        except sqlite3.Error as e:
            self.logger.error(f"Participant creation failed for {email}: {str(e)}")
            return {'success': False, 'error': 'Failed to create participant'}

    def get_all_participants(self) -> List[Dict[str, Any]]:
        """
        Get all participants with team and lab names, newest first.

        Returns:
            List[Dict[str, Any]]: Participants
        """
        participants = self.db.execute_query(
            """SELECT p.*, t.name AS team_name, l.name AS lab_name
               FROM participants p
               LEFT JOIN teams t ON p.team_id = t.id
               LEFT JOIN labs l ON p.lab_id = l.id
               ORDER BY p.created_at DESC, p.id DESC"""
        )
        meals = self._meals_by_participant()
        for participant in participants:
            participant['is_checked_in'] = bool(participant['is_checked_in'])
            participant['meals_consumed'] = meals.get(participant['id'], [])
        return participants

    def get_participant(self, participant_id: int) -> Optional[Dict[str, Any]]:
        """
        Get a participant by database ID.

        Returns:
            Dict[str, Any]: Participant or None
        """
        participant = self.db.execute_query(
            """SELECT p.*, t.name AS team_name, l.name AS lab_name
               FROM participants p
               LEFT JOIN teams t ON p.team_id = t.id
               LEFT JOIN labs l ON p.lab_id = l.id
               WHERE p.id = ?""",
            (participant_id,),
            fetch_all=False
        )
        if participant:
            participant['is_checked_in'] = bool(participant['is_checked_in'])
            participant['meals_consumed'] = [
                row['meal_type'] for row in self.db.execute_query(
                    "SELECT meal_type FROM meal_consumptions WHERE participant_id = ? ORDER BY consumed_at",
                    (participant_id,)
                )
            ]
        return participant

    def update_participant_lab(self, participant_id: int, lab_id: int) -> Dict[str, Any]:
        """
        Move a participant to another lab.

        Args:
            participant_id (int): Participant database ID
            lab_id (int): Target lab ID

        Returns:
            Dict[str, Any]: Update result
        """
        lab = self.db.execute_query("SELECT id FROM labs WHERE id = ?", (lab_id,), fetch_all=False)
        if not lab:
            return {'success': False, 'error': 'Lab not found'}

        affected = self.db.execute_update(
            "UPDATE participants SET lab_id = ? WHERE id = ?",
            (lab_id, participant_id)
        )
        if affected == 0:
            return {'success': False, 'error': 'Participant not found'}

        self.logger.info(f"Participant {participant_id} moved to lab {lab_id}")
        return {'success': True, 'participant': self.get_participant(participant_id)}

    def checkout_participant(self, participant_id: int) -> Dict[str, Any]:
        """
        Admin checkout; does not create a scan log entry.

        Returns:
            Dict[str, Any]: Checkout result
        """
        affected = self.db.execute_update(
            "UPDATE participants SET is_checked_in = 0, last_check_in = NULL WHERE id = ?",
            (participant_id,)
        )
        if affected == 0:
            return {'success': False, 'error': 'Participant not found'}

        self.logger.info(f"Participant {participant_id} checked out by admin")
        return {'success': True, 'participant': self.get_participant(participant_id)}

    def checkout_all_participants(self) -> int:
        """
        Check out every participant currently checked in.

        Returns:
            int: Number of participants checked out
        """
        count = self.db.execute_update(
            "UPDATE participants SET is_checked_in = 0, last_check_in = NULL WHERE is_checked_in = 1"
        )
        self.logger.info(f"Checked out {count} participants")
        return count

    def delete_participant(self, participant_id: int) -> bool:
        affected = self.db.execute_update("DELETE FROM participants WHERE id = ?", (participant_id,))
        if affected:
            self.logger.info(f"Participant {participant_id} deleted")
        return affected > 0

    def _meals_by_participant(self) -> Dict[int, List[str]]:
        meals = {}
        for row in self.db.execute_query(
            "SELECT participant_id, meal_type FROM meal_consumptions ORDER BY consumed_at"
        ):
            meals.setdefault(row['participant_id'], []).append(row['meal_type'])
        return meals
