# HackScan Attendance Tracker - Package
"""
Main package for the HackScan hackathon attendance tracker.
This package contains the scan engines, the mode controller and the
roster and reporting modules used by the Flask application.
"""

__version__ = "1.0.0"
__description__ = "Hackathon attendance and meal tracking with a QR scan preview/confirm protocol"

# Import core components for easy access
from .modules.database_manager import DatabaseManager
from .modules.qr_generator import QRGenerator
from .modules.entity_store import EntityStore
from .modules.mode_controller import ModeController
from .modules.scan_resolution import ScanResolver
from .modules.scan_confirmation import ScanConfirmer
from .modules.participant_manager import ParticipantManager
from .modules.volunteer_manager import VolunteerManager
from .modules.group_manager import TeamManager, LabManager
from .modules.report_generator import ReportGenerator

__all__ = [
    'DatabaseManager',
    'QRGenerator',
    'EntityStore',
    'ModeController',
    'ScanResolver',
    'ScanConfirmer',
    'ParticipantManager',
    'VolunteerManager',
    'TeamManager',
    'LabManager',
    'ReportGenerator'
]
