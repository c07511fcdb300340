"""
Volunteer Manager Module - HackScan Attendance Tracker

This module handles volunteer administration. Volunteers are registered
without a badge; their token is generated on demand so badges can be printed
late or reissued after one is lost.

Features:
- Volunteer registration and listing
- Badge token generation and regeneration
- Admin checkout
- Volunteer removal
"""

import logging
import re
import sqlite3
from typing import Any, Dict, List, Optional

from hackscan.modules.entity_store import allocate_qr_hash

EMAIL_PATTERN = re.compile(r'^[\w\.\+-]+@[\w\.-]+\.\w+$')


class VolunteerManager:
    """
    Volunteer administration for the attendance tracker.
    """

    def __init__(self, database_manager, qr_generator):
        """
        Initialize the volunteer manager.

        Args:
            database_manager: Database manager instance
            qr_generator: QR generator used for badge tokens
        """
        self.db = database_manager
        self.qr_generator = qr_generator
        self.logger = logging.getLogger(__name__)

    def create_volunteer(self, volunteer_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a volunteer.

        Args:
            volunteer_data (Dict[str, Any]): firstName, lastName, email, organization

        Returns:
            Dict[str, Any]: Creation result
        """
        first_name = str(volunteer_data.get('firstName') or '').strip()
        last_name = str(volunteer_data.get('lastName') or '').strip() or None
        email = str(volunteer_data.get('email') or '').strip().lower()
        organization = str(volunteer_data.get('organization') or '').strip() or None

        if not first_name or not email:
            return {'success': False, 'error': 'firstName and email are required'}

        if not EMAIL_PATTERN.match(email):
            return {'success': False, 'error': 'Invalid email format'}

        existing = self.db.execute_query(
            "SELECT id FROM volunteers WHERE email = ?",
            (email,),
            fetch_all=False
        )
        if existing:
            return {'success': False, 'error': 'Email address already exists'}

        try:
            volunteer_id = self.db.execute_update(
                """INSERT INTO volunteers (first_name, last_name, email, organization)
                   VALUES (?, ?, ?, ?)""",
                (first_name, last_name, email, organization)
            )
        except sqlite3.IntegrityError:
            return {'success': False, 'error': 'Email address already exists'}

        self.logger.info(f"Volunteer created: {email} (ID: {volunteer_id})")
        return {
            'success': True,
            'volunteer': self.get_volunteer(volunteer_id),
            'message': 'Volunteer created successfully'
        }

    def get_all_volunteers(self) -> List[Dict[str, Any]]:
        volunteers = self.db.execute_query(
            "SELECT * FROM volunteers ORDER BY created_at DESC, id DESC"
        )
        for volunteer in volunteers:
            volunteer['is_checked_in'] = bool(volunteer['is_checked_in'])
        return volunteers

    def get_volunteer(self, volunteer_id: int) -> Optional[Dict[str, Any]]:
        volunteer = self.db.execute_query(
            "SELECT * FROM volunteers WHERE id = ?",
            (volunteer_id,),
            fetch_all=False
        )
        if volunteer:
            volunteer['is_checked_in'] = bool(volunteer['is_checked_in'])
        return volunteer

    def generate_volunteer_qr(self, volunteer_id: int) -> Dict[str, Any]:
        """
        Issue a new badge token, replacing any previous one.

        The old token stops resolving as soon as this commits.

        Args:
            volunteer_id (int): Volunteer database ID

        Returns:
            Dict[str, Any]: Result with the new token
        """
        try:
            with self.db.transaction() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT id FROM volunteers WHERE id = ?", (volunteer_id,))
                if not cursor.fetchone():
                    return {'success': False, 'error': 'Volunteer not found'}

                qr_hash = allocate_qr_hash(cursor, self.qr_generator, 'volunteer', volunteer_id)
                cursor.execute(
                    """UPDATE volunteers SET qr_code_hash = ?, updated_at = CURRENT_TIMESTAMP
                       WHERE id = ?""",
                    (qr_hash, volunteer_id)
                )
        except sqlite3.Error as e:
            self.logger.error(f"Badge generation failed for volunteer {volunteer_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to generate QR code'}

        self.logger.info(f"Badge token issued for volunteer {volunteer_id}")
        return {'success': True, 'qrCodeHash': qr_hash, 'volunteer': self.get_volunteer(volunteer_id)}

    def checkout_volunteer(self, volunteer_id: int) -> Dict[str, Any]:
        """
        Admin checkout; does not create a scan log entry.
        """
        affected = self.db.execute_update(
            """UPDATE volunteers
               SET is_checked_in = 0, last_check_in = NULL, updated_at = CURRENT_TIMESTAMP
               WHERE id = ?""",
            (volunteer_id,)
        )
        if affected == 0:
            return {'success': False, 'error': 'Volunteer not found'}

        self.logger.info(f"Volunteer {volunteer_id} checked out by admin")
        return {'success': True, 'volunteer': self.get_volunteer(volunteer_id)}

    def delete_volunteer(self, volunteer_id: int) -> bool:
        affected = self.db.execute_update("DELETE FROM volunteers WHERE id = ?", (volunteer_id,))
        if affected:
            self.logger.info(f"Volunteer {volunteer_id} deleted")
        return affected > 0
