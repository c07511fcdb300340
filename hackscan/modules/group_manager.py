"""
Group Manager Module - HackScan Attendance Tracker

Teams and labs are both simple named groups that participants belong to.
Labs additionally drive meal eligibility through the scan mode's allowed
lab list.

Features:
- Team and lab creation with unique names
- Listing with member counts
- Lookup by ID
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional


class GroupManager:
    """
    Shared administration for named participant groups.
    """

    table = None
    label = None

    def __init__(self, database_manager):
        """
        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def create(self, group_data: Dict[str, Any], created_by: str = None) -> Dict[str, Any]:
        """
        Create a group with a unique name.

        Args:
            group_data (Dict[str, Any]): name and optional description
            created_by (str): Admin or scanner id issuing the request

        Returns:
            Dict[str, Any]: Creation result
        """
        name = str(group_data.get('name') or '').strip()
        description = group_data.get('description')
        if not name:
            return {'success': False, 'error': f'{self.label} name is required'}

        existing = self.db.execute_query(
            f"SELECT id FROM {self.table} WHERE name = ?",
            (name,),
            fetch_all=False
        )
        if existing:
            return {'success': False, 'error': f'{self.label} name already exists'}

        try:
            group_id = self._insert(name, description, created_by)
        except sqlite3.IntegrityError:
            return {'success': False, 'error': f'{self.label} name already exists'}

        self.logger.info(f"{self.label} created: {name} (ID: {group_id})")
        return {
            'success': True,
            self.label.lower(): self.get_by_id(group_id),
            'message': f'{self.label} created successfully'
        }

    def get_all(self) -> List[Dict[str, Any]]:
        return self.db.execute_query(
            f"""SELECT g.*, COUNT(p.id) AS participant_count
                FROM {self.table} g
                LEFT JOIN participants p ON p.{self._member_column} = g.id
                GROUP BY g.id
                ORDER BY g.name"""
        )

    def get_by_id(self, group_id: int) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            f"SELECT * FROM {self.table} WHERE id = ?",
            (group_id,),
            fetch_all=False
        )

    @property
    def _member_column(self) -> str:
        return f"{self.label.lower()}_id"

    def _insert(self, name, description, created_by) -> int:
        return self.db.execute_update(
            f"INSERT INTO {self.table} (name, description) VALUES (?, ?)",
            (name, description)
        )


class TeamManager(GroupManager):
    table = 'teams'
    label = 'Team'

    def _insert(self, name, description, created_by) -> int:
        return self.db.execute_update(
            "INSERT INTO teams (name, description, created_by) VALUES (?, ?, ?)",
            (name, description, created_by)
        )


class LabManager(GroupManager):
    table = 'labs'
    label = 'Lab'
