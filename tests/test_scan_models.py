"""Tests for the attendance state machine and result serialization"""
import pytest

from hackscan.modules.qr_generator import QRGenerator
from hackscan.modules.scan_models import (
    AttendanceState,
    ModeConfig,
    ScanAction,
    ScanFailure,
    ScanFailureReason,
    Subject,
    SubjectType,
    next_attendance_state,
    proposed_attendance_action,
)


class TestAttendanceStateMachine:

    @pytest.mark.parametrize('state, action, expected', [
        (AttendanceState.NOT_CHECKED_IN, ScanAction.ENTRY, AttendanceState.CHECKED_IN),
        (AttendanceState.CHECKED_IN, ScanAction.EXIT, AttendanceState.NOT_CHECKED_IN),
        (AttendanceState.CHECKED_IN, ScanAction.ENTRY, None),
        (AttendanceState.NOT_CHECKED_IN, ScanAction.EXIT, None),
        (AttendanceState.CHECKED_IN, ScanAction.CONSUME, None),
    ])
    def test_transitions(self, state, action, expected):
        assert next_attendance_state(state, action) == expected

    def test_proposed_action_toggles(self):
        assert proposed_attendance_action(AttendanceState.NOT_CHECKED_IN) == ScanAction.ENTRY
        assert proposed_attendance_action(AttendanceState.CHECKED_IN) == ScanAction.EXIT


class TestResultObjects:

    def test_failure_uses_default_message(self):
        failure = ScanFailure(ScanFailureReason.ALREADY_CHECKED_IN)
        assert failure.to_dict() == {
            'success': False,
            'reason': 'AlreadyCheckedIn',
            'message': 'Already checked in',
        }

    def test_volunteer_name_without_last_name(self):
        subject = Subject.from_volunteer_row({
            'id': 3, 'first_name': 'Margaret', 'last_name': None, 'email': 'm@example.com',
            'is_checked_in': 0, 'last_check_in': None, 'qr_code_hash': 'abc',
        })
        assert subject.display_name == 'Margaret'
        assert subject.subject_type == SubjectType.VOLUNTEER
        assert 'mealsConsumed' not in subject.to_dict()

    def test_scanner_allow_list(self):
        assert ModeConfig().scanner_is_allowed(None)
        restricted = ModeConfig(allowed_scanner_ids=['desk'])
        assert restricted.scanner_is_allowed('desk')
        assert not restricted.scanner_is_allowed(None)


class TestQRGenerator:

    def test_hash_is_random_sha256(self):
        generator = QRGenerator()
        first = generator.generate_qr_hash('participant', 'ada@example.com')
        second = generator.generate_qr_hash('participant', 'ada@example.com')

        assert len(first) == 64
        assert int(first, 16) >= 0
        assert first != second

    def test_render_png_with_label(self):
        generator = QRGenerator(box_size=4, border=2)
        plain = generator.render_badge_png('a' * 64)
        labelled = generator.render_badge_png('a' * 64, label='Ada Lovelace')

        assert plain.startswith(b'\x89PNG')
        assert labelled.startswith(b'\x89PNG')
        assert labelled != plain
