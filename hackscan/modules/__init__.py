# HackScan Attendance Tracker - Modules Package
"""
Core business logic modules for the HackScan attendance tracker.
"""

__version__ = "1.0.0"
__description__ = "Core modules for scan resolution, confirmation and roster management"

# Module descriptions
MODULES = {
    'database_manager': 'Database connections and schema management',
    'scan_models': 'Modes, actions, attendance state machine and scan results',
    'entity_store': 'Subject lookups and atomic scan writes',
    'mode_controller': 'Global scan mode configuration',
    'scan_resolution': 'Side-effect free scan preview',
    'scan_confirmation': 'Exactly-once scan confirmation',
    'qr_generator': 'Badge token generation and QR rendering',
    'participant_manager': 'Participant administration',
    'volunteer_manager': 'Volunteer administration',
    'group_manager': 'Team and lab administration',
    'report_generator': 'Statistics, meal analytics and CSV export'
}
