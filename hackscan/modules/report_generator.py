"""
Report Generator Module - HackScan Attendance Tracker

This module handles the dashboard statistics and data export for the
attendance tracker. It aggregates the roster, the scan log and the meal
consumption table into the figures shown on the admin dashboard.

Features:
- Headcount statistics for participants and volunteers
- Recent scan feed
- Meal analytics per meal type and per lab
- Meal reset (all meals or a single meal type)
- Attendance CSV export
"""

import pandas as pd
from datetime import datetime
from typing import Dict, List, Any, Optional
import logging

from hackscan.modules.scan_models import MEAL_TYPES

ATTENDANCE_EXPORT_COLUMNS = [
    'id', 'name', 'email', 'team', 'lab', 'checked_in', 'last_check_in', 'meals_consumed'
]


class ReportGenerator:
    """
    Dashboard statistics and exports for the attendance tracker.
    """

    def __init__(self, database_manager):
        """
        Initialize the report generator with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get current headcount statistics.

        Returns:
            Dict[str, Any]: total, checkedIn, percentage, teamCount,
            volunteersTotal and volunteersCheckedIn
        """
        participants = self.db.execute_query(
            """SELECT COUNT(*) AS total,
                      COALESCE(SUM(CASE WHEN is_checked_in = 1 THEN 1 ELSE 0 END), 0) AS checked_in
               FROM participants""",
            fetch_all=False
        )
        volunteers = self.db.execute_query(
            """SELECT COUNT(*) AS total,
                      COALESCE(SUM(CASE WHEN is_checked_in = 1 THEN 1 ELSE 0 END), 0) AS checked_in
               FROM volunteers""",
            fetch_all=False
        )
        teams = self.db.execute_query("SELECT COUNT(*) AS count FROM teams", fetch_all=False)

        total = participants['total']
        checked_in = participants['checked_in']
        percentage = round((checked_in / total) * 100) if total > 0 else 0

        return {
            'total': total,
            'checkedIn': checked_in,
            'percentage': percentage,
            'teamCount': teams['count'],
            'volunteersTotal': volunteers['total'],
            'volunteersCheckedIn': volunteers['checked_in'],
        }

    def get_recent_scans(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Get the most recent attendance scans, newest first.

        Args:
            limit (int): Maximum number of scans

        Returns:
            List[Dict[str, Any]]: Scan log entries with subject names
        """
        return self.db.execute_query(
            """SELECT s.id, s.subject_type, s.scan_type, s.scanned_by, s.created_at,
                      COALESCE(p.name, TRIM(v.first_name || ' ' || COALESCE(v.last_name, ''))) AS name,
                      COALESCE(p.id, v.id) AS subject_id
               FROM scan_logs s
               LEFT JOIN participants p ON s.participant_id = p.id
               LEFT JOIN volunteers v ON s.volunteer_id = v.id
               ORDER BY s.created_at DESC, s.id DESC
               LIMIT ?""",
            (limit,)
        )

    def get_meal_analytics(self) -> Dict[str, Any]:
        """
        Count redeemed meals per meal type, and per lab for each meal type.

        Returns:
            Dict[str, Any]: totals by meal, per-lab breakdown and participant count
        """
        by_meal = {meal_type: 0 for meal_type in MEAL_TYPES}
        for row in self.db.execute_query(
            "SELECT meal_type, COUNT(*) AS count FROM meal_consumptions GROUP BY meal_type"
        ):
            by_meal[row['meal_type']] = row['count']

        labs = {}
        for row in self.db.execute_query(
            """SELECT l.id, l.name, COUNT(p.id) AS participant_count
               FROM labs l
               LEFT JOIN participants p ON p.lab_id = l.id
               GROUP BY l.id
               ORDER BY l.name"""
        ):
            labs[row['id']] = {
                'labId': row['id'],
                'labName': row['name'],
                'participants': row['participant_count'],
                'meals': {meal_type: 0 for meal_type in MEAL_TYPES},
            }

        for row in self.db.execute_query(
            """SELECT p.lab_id, m.meal_type, COUNT(*) AS count
               FROM meal_consumptions m
               JOIN participants p ON m.participant_id = p.id
               GROUP BY p.lab_id, m.meal_type"""
        ):
            if row['lab_id'] in labs:
                labs[row['lab_id']]['meals'][row['meal_type']] = row['count']

        participants = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM participants", fetch_all=False
        )

        return {
            'byMealType': by_meal,
            'byLab': list(labs.values()),
            'totalParticipants': participants['count'],
        }

    def reset_meals(self, meal_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Delete meal consumption records.

        Args:
            meal_type (str): Meal type to reset, or None for every meal

        Returns:
            Dict[str, Any]: Reset result with the number of deleted rows
        """
        if meal_type is None:
            deleted = self.db.execute_update("DELETE FROM meal_consumptions")
        elif meal_type in MEAL_TYPES:
            deleted = self.db.execute_update(
                "DELETE FROM meal_consumptions WHERE meal_type = ?",
                (meal_type,)
            )
        else:
            return {
                'success': False,
                'error': f"mealType must be one of {', '.join(MEAL_TYPES)}"
            }

        self.logger.info(f"Reset {deleted} meal records ({meal_type or 'all meals'})")
        return {
            'success': True,
            'deleted': deleted,
            'message': f"Reset {meal_type or 'all meals'}"
        }

    def export_attendance_csv(self) -> Dict[str, Any]:
        """
        Export the participant roster with attendance and meals as CSV.

        Returns:
            Dict[str, Any]: filename and CSV content
        """
        records = self.db.execute_query(
            """SELECT p.id, p.name, p.email, t.name AS team, l.name AS lab,
                      p.is_checked_in AS checked_in, p.last_check_in,
                      (SELECT GROUP_CONCAT(meal_type, ';')
                         FROM meal_consumptions m WHERE m.participant_id = p.id) AS meals_consumed
               FROM participants p
               LEFT JOIN teams t ON p.team_id = t.id
               LEFT JOIN labs l ON p.lab_id = l.id
               ORDER BY p.name, p.id"""
        )

        df = pd.DataFrame(records, columns=ATTENDANCE_EXPORT_COLUMNS)
        if not df.empty:
            df['checked_in'] = df['checked_in'].astype(bool)
            df['meals_consumed'] = df['meals_consumed'].fillna('')

        filename = f"attendance_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        self.logger.info(f"Attendance export generated with {len(df)} rows")
        return {
            'success': True,
            'filename': filename,
            'content': df.to_csv(index=False),
            'rows': len(df),
        }
