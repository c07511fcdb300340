"""
Scan Models Module - HackScan Attendance Tracker

Data structures shared by the scan resolution engine, the scan confirmation
engine and the mode controller: modes, actions, meal types, the per-subject
attendance state machine, and the result objects returned to the HTTP layer.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class SystemMode(str, Enum):
    ATTENDANCE = 'ATTENDANCE'
    MEAL = 'MEAL'


class ScanAction(str, Enum):
    ENTRY = 'ENTRY'
    EXIT = 'EXIT'
    CONSUME = 'CONSUME'


class SubjectType(str, Enum):
    PARTICIPANT = 'participant'
    VOLUNTEER = 'volunteer'


class AttendanceState(str, Enum):
    NOT_CHECKED_IN = 'NOT_CHECKED_IN'
    CHECKED_IN = 'CHECKED_IN'


MEAL_TYPES = ('BREAKFAST', 'LUNCH', 'SNACKS', 'DINNER')

# Attendance transition table: (current state, action) -> next state.
# Anything not listed is a rejected transition.
ATTENDANCE_TRANSITIONS = {
    (AttendanceState.NOT_CHECKED_IN, ScanAction.ENTRY): AttendanceState.CHECKED_IN,
    (AttendanceState.CHECKED_IN, ScanAction.EXIT): AttendanceState.NOT_CHECKED_IN,
}


class ScanFailureReason:
    """Reason codes returned to scanners and admins."""
    NOT_FOUND = 'NotFound'
    ALREADY_CHECKED_IN = 'AlreadyCheckedIn'
    ALREADY_CHECKED_OUT = 'AlreadyCheckedOut'
    ALREADY_CONSUMED = 'AlreadyConsumed'
    LAB_NOT_ELIGIBLE = 'LabNotEligible'
    VOLUNTEER_NOT_ELIGIBLE = 'VolunteerNotEligible'
    SCANNER_NOT_ALLOWED = 'ScannerNotAllowed'
    MODE_MISMATCH = 'ModeMismatch'
    INVALID_MODE_CONFIG = 'InvalidModeConfig'
    VALIDATION_ERROR = 'ValidationError'
    SYSTEM_ERROR = 'SystemError'


FAILURE_MESSAGES = {
    ScanFailureReason.NOT_FOUND: 'No participant or volunteer found with this QR code',
    ScanFailureReason.ALREADY_CHECKED_IN: 'Already checked in',
    ScanFailureReason.ALREADY_CHECKED_OUT: 'Already checked out',
    ScanFailureReason.ALREADY_CONSUMED: 'Meal already taken',
    ScanFailureReason.LAB_NOT_ELIGIBLE: 'This lab is not eligible for the current meal',
    ScanFailureReason.VOLUNTEER_NOT_ELIGIBLE: 'Meals are only issued to participants',
    ScanFailureReason.SCANNER_NOT_ALLOWED: 'This scanner is not allowed to redeem meals',
    ScanFailureReason.MODE_MISMATCH: 'Meal redemption is not active',
    ScanFailureReason.INVALID_MODE_CONFIG: 'Invalid mode configuration',
    ScanFailureReason.VALIDATION_ERROR: 'Invalid request',
    ScanFailureReason.SYSTEM_ERROR: 'An error occurred while processing the scan. Please try again.',
}

REJECTED_ATTENDANCE_REASONS = {
    ScanAction.ENTRY: ScanFailureReason.ALREADY_CHECKED_IN,
    ScanAction.EXIT: ScanFailureReason.ALREADY_CHECKED_OUT,
}


def attendance_state(is_checked_in: bool) -> AttendanceState:
    return AttendanceState.CHECKED_IN if is_checked_in else AttendanceState.NOT_CHECKED_IN


def next_attendance_state(state: AttendanceState, action: ScanAction) -> Optional[AttendanceState]:
    """Return the state an attendance action leads to, or None if it is rejected."""
    return ATTENDANCE_TRANSITIONS.get((state, action))


def proposed_attendance_action(state: AttendanceState) -> ScanAction:
    """The single attendance action that is valid from the given state."""
    for (from_state, action) in ATTENDANCE_TRANSITIONS:
        if from_state == state:
            return action
    raise ValueError(f"No attendance transition from {state}")


@dataclass
class Subject:
    """A participant or volunteer resolved from a QR hash."""
    id: int
    subject_type: SubjectType
    display_name: str
    email: Optional[str]
    is_checked_in: bool
    last_check_in: Optional[str]
    qr_code_hash: Optional[str]
    team_id: Optional[int] = None
    lab_id: Optional[int] = None
    consumed_meals: FrozenSet[str] = frozenset()

    @property
    def state(self) -> AttendanceState:
        return attendance_state(self.is_checked_in)

    @classmethod
    def from_participant_row(cls, row: Dict[str, Any], consumed_meals=()) -> 'Subject':
        return cls(
            id=row['id'],
            subject_type=SubjectType.PARTICIPANT,
            display_name=row['name'],
            email=row.get('email'),
            is_checked_in=bool(row['is_checked_in']),
            last_check_in=row.get('last_check_in'),
            qr_code_hash=row.get('qr_code_hash'),
            team_id=row.get('team_id'),
            lab_id=row.get('lab_id'),
            consumed_meals=frozenset(consumed_meals),
        )

    @classmethod
    def from_volunteer_row(cls, row: Dict[str, Any]) -> 'Subject':
        name = ' '.join(part for part in (row['first_name'], row.get('last_name')) if part)
        return cls(
            id=row['id'],
            subject_type=SubjectType.VOLUNTEER,
            display_name=name,
            email=row.get('email'),
            is_checked_in=bool(row['is_checked_in']),
            last_check_in=row.get('last_check_in'),
            qr_code_hash=row.get('qr_code_hash'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'type': self.subject_type.value,
            'name': self.display_name,
            'email': self.email,
            'isCheckedIn': self.is_checked_in,
            'lastCheckIn': self.last_check_in,
        }
        if self.subject_type == SubjectType.PARTICIPANT:
            data['teamId'] = self.team_id
            data['labId'] = self.lab_id
            data['mealsConsumed'] = sorted(self.consumed_meals)
        return data


@dataclass(frozen=True)
class ScanEvent:
    """Audit record of one committed attendance transition."""
    subject_type: SubjectType
    subject_id: int
    scanned_by: str
    scan_type: ScanAction


@dataclass
class ModeConfig:
    """The global scan mode configuration."""
    mode: SystemMode = SystemMode.ATTENDANCE
    selected_meal_type: Optional[str] = None
    allowed_lab_ids: List[int] = field(default_factory=list)
    allowed_scanner_ids: List[str] = field(default_factory=list)
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ModeConfig':
        return cls(
            mode=SystemMode(row['mode']),
            selected_meal_type=row.get('selected_meal_type'),
            allowed_lab_ids=json.loads(row.get('allowed_lab_ids') or '[]'),
            allowed_scanner_ids=json.loads(row.get('allowed_scanner_ids') or '[]'),
            updated_at=row.get('updated_at'),
        )

    def lab_is_eligible(self, lab_id: Optional[int]) -> bool:
        return lab_id is not None and lab_id in self.allowed_lab_ids

    def scanner_is_allowed(self, scanner_id: Optional[str]) -> bool:
        # An empty allow-list means every scanner may redeem meals
        if not self.allowed_scanner_ids:
            return True
        return scanner_id in self.allowed_scanner_ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mode': self.mode.value,
            'selectedMealType': self.selected_meal_type,
            'allowedLabIds': list(self.allowed_lab_ids),
            'allowedScannerIds': list(self.allowed_scanner_ids),
            'updatedAt': self.updated_at,
        }


@dataclass
class ScanFailure:
    """An expected, operator-facing scan or configuration failure."""
    reason: str
    message: str = ''
    success: bool = False

    def __post_init__(self):
        if not self.message:
            self.message = FAILURE_MESSAGES.get(self.reason, self.reason)

    def to_dict(self) -> Dict[str, Any]:
        return {'success': False, 'reason': self.reason, 'message': self.message}


@dataclass
class ResolvedScan:
    """The action a scan would perform, computed without side effects."""
    subject: Subject
    proposed_action: ScanAction
    mode: SystemMode
    meal_type: Optional[str] = None
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': True,
            'subjectId': self.subject.id,
            'subjectType': self.subject.subject_type.value,
            'name': self.subject.display_name,
            'proposedAction': self.proposed_action.value,
            'mode': self.mode.value,
            'isCheckedIn': self.subject.is_checked_in,
        }
        if self.meal_type:
            data['mealType'] = self.meal_type
        return data


@dataclass
class ScanResult:
    """A committed scan confirmation."""
    subject: Subject
    action: ScanAction
    message: str
    meal_type: Optional[str] = None
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': True,
            'message': self.message,
            'action': self.action.value,
            'subject': self.subject.to_dict(),
        }
        if self.meal_type:
            data['mealType'] = self.meal_type
        return data
