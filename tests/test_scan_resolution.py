"""Tests for scan previews"""
import sqlite3

from hackscan.modules.scan_models import (
    ResolvedScan,
    ScanAction,
    ScanFailure,
    ScanFailureReason,
    SubjectType,
    SystemMode,
)


def scan_log_count(db):
    return db.execute_query("SELECT COUNT(*) AS count FROM scan_logs", fetch_all=False)['count']


class TestAttendancePreview:

    def test_not_checked_in_proposes_entry(self, services, participant):
        result = services['resolver'].resolve(participant['qr_code_hash'])

        assert isinstance(result, ResolvedScan)
        assert result.proposed_action == ScanAction.ENTRY
        assert result.mode == SystemMode.ATTENDANCE
        assert result.subject.id == participant['id']
        assert result.subject.subject_type == SubjectType.PARTICIPANT

    def test_checked_in_proposes_exit(self, services, participant):
        services['confirmer'].confirm(participant['qr_code_hash'], 'ENTRY')
        result = services['resolver'].resolve(participant['qr_code_hash'])
        assert result.proposed_action == ScanAction.EXIT

    def test_preview_is_repeatable_and_writes_nothing(self, services, db, participant):
        first = services['resolver'].resolve(participant['qr_code_hash'])
        second = services['resolver'].resolve(participant['qr_code_hash'])

        assert first.to_dict() == second.to_dict()
        assert scan_log_count(db) == 0
        assert services['participants'].get_participant(participant['id'])['is_checked_in'] is False

    def test_volunteer_resolves_after_participants(self, services, volunteer):
        result = services['resolver'].resolve(volunteer['qr_code_hash'])

        assert result.subject.subject_type == SubjectType.VOLUNTEER
        assert result.subject.display_name == 'Grace Hopper'
        assert result.proposed_action == ScanAction.ENTRY

    def test_token_is_trimmed(self, services, participant):
        result = services['resolver'].resolve(f"  {participant['qr_code_hash']}\n")
        assert isinstance(result, ResolvedScan)

    def test_unknown_hash(self, services, participant):
        result = services['resolver'].resolve('garbage')
        assert isinstance(result, ScanFailure)
        assert result.reason == ScanFailureReason.NOT_FOUND

    def test_missing_hash_is_a_validation_error(self, services):
        for value in (None, '', '   ', 42):
            assert services['resolver'].resolve(value).reason == ScanFailureReason.VALIDATION_ERROR

    def test_store_failure_is_a_system_error(self, services, monkeypatch):
        def broken(qr_hash):
            raise sqlite3.OperationalError('database is locked')

        monkeypatch.setattr(services['entity_store'], 'find_subject_by_hash', broken)
        result = services['resolver'].resolve('anything')
        assert result.reason == ScanFailureReason.SYSTEM_ERROR


class TestMealPreview:

    def test_eligible_participant_proposes_consume(self, services, participant, lab_a, meal_mode):
        meal_mode('LUNCH', [lab_a['id']])
        result = services['resolver'].resolve(participant['qr_code_hash'])

        assert result.proposed_action == ScanAction.CONSUME
        assert result.meal_type == 'LUNCH'
        assert result.to_dict()['mealType'] == 'LUNCH'

    def test_participant_in_other_lab(self, services, make_participant, lab_a, lab_b, meal_mode):
        meal_mode('LUNCH', [lab_a['id']])
        quinn = make_participant('Quinn', 'quinn@example.com', lab_b)

        result = services['resolver'].resolve(quinn['qr_code_hash'])
        assert result.reason == ScanFailureReason.LAB_NOT_ELIGIBLE

    def test_meal_already_taken(self, services, participant, lab_a, meal_mode):
        meal_mode('LUNCH', [lab_a['id']])
        services['confirmer'].confirm(participant['qr_code_hash'], 'CONSUME', 'LUNCH')

        result = services['resolver'].resolve(participant['qr_code_hash'])
        assert result.reason == ScanFailureReason.ALREADY_CONSUMED

    def test_other_meal_still_available(self, services, participant, lab_a, meal_mode):
        meal_mode('BREAKFAST', [lab_a['id']])
        services['confirmer'].confirm(participant['qr_code_hash'], 'CONSUME')
        meal_mode('LUNCH', [lab_a['id']])

        result = services['resolver'].resolve(participant['qr_code_hash'])
        assert result.proposed_action == ScanAction.CONSUME
        assert result.meal_type == 'LUNCH'

    def test_volunteer_is_not_eligible(self, services, volunteer, lab_a, meal_mode):
        meal_mode('LUNCH', [lab_a['id']])
        result = services['resolver'].resolve(volunteer['qr_code_hash'])
        assert result.reason == ScanFailureReason.VOLUNTEER_NOT_ELIGIBLE

    def test_scanner_allow_list(self, services, participant, lab_a, meal_mode):
        meal_mode('LUNCH', [lab_a['id']], ['food-desk'])

        rejected = services['resolver'].resolve(participant['qr_code_hash'], scanner_id='gate-1')
        allowed = services['resolver'].resolve(participant['qr_code_hash'], scanner_id='food-desk')

        assert rejected.reason == ScanFailureReason.SCANNER_NOT_ALLOWED
        assert allowed.proposed_action == ScanAction.CONSUME

    def test_mode_change_applies_to_next_scan(self, services, participant, lab_a, meal_mode):
        assert services['resolver'].resolve(participant['qr_code_hash']).proposed_action == ScanAction.ENTRY
        meal_mode('DINNER', [lab_a['id']])
        assert services['resolver'].resolve(participant['qr_code_hash']).proposed_action == ScanAction.CONSUME
