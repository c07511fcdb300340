"""
HackScan Attendance Tracker - Main Application

This module serves as the main entry point for the hackathon attendance
tracker. It builds the Flask application, wires the scan engines and roster
managers to one database, and exposes the JSON API used by scanner devices
and the admin dashboard.

Every scan is a two-step exchange: the scanner previews a badge to learn what
the scan would do, the operator confirms, and only the confirmation writes.

Features:
- Scan preview and confirmation for entry, exit and meals
- Global scan mode (attendance or meal redemption)
- Participant, volunteer, team and lab administration
- Badge QR code images
- Dashboard statistics, meal analytics and CSV export
"""

import io
import logging
import os
import sqlite3

from flask import Flask, Response, current_app, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from config import init_config
from hackscan.modules.database_manager import DatabaseManager
from hackscan.modules.entity_store import EntityStore
from hackscan.modules.group_manager import LabManager, TeamManager
from hackscan.modules.mode_controller import ModeController
from hackscan.modules.participant_manager import ParticipantManager
from hackscan.modules.qr_generator import QRGenerator
from hackscan.modules.report_generator import ReportGenerator
from hackscan.modules.scan_confirmation import ScanConfirmer
from hackscan.modules.scan_models import FAILURE_MESSAGES, ScanFailure, ScanFailureReason
from hackscan.modules.scan_resolution import ScanResolver
from hackscan.modules.volunteer_manager import VolunteerManager

# Configure logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

# HTTP status for each scan failure reason
REASON_STATUS = {
    ScanFailureReason.VALIDATION_ERROR: 400,
    ScanFailureReason.NOT_FOUND: 404,
    ScanFailureReason.LAB_NOT_ELIGIBLE: 403,
    ScanFailureReason.VOLUNTEER_NOT_ELIGIBLE: 403,
    ScanFailureReason.SCANNER_NOT_ALLOWED: 403,
    ScanFailureReason.ALREADY_CHECKED_IN: 409,
    ScanFailureReason.ALREADY_CHECKED_OUT: 409,
    ScanFailureReason.ALREADY_CONSUMED: 409,
    ScanFailureReason.MODE_MISMATCH: 409,
    ScanFailureReason.INVALID_MODE_CONFIG: 422,
    ScanFailureReason.SYSTEM_ERROR: 500,
}


def create_app(config_name=None, config_overrides=None):
    """
    Application factory.

    Args:
        config_name (str): Key in the configuration dictionary
        config_overrides (dict): Extra settings applied on top of the config class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    init_config(app, config_name, config_overrides)
    logging.getLogger('hackscan').setLevel(app.config['LOG_LEVEL'])

    # Initialize system components
    db_manager = DatabaseManager(
        app.config['DATABASE_PATH'],
        journal_mode=app.config['DATABASE_JOURNAL_MODE'],
        timeout=app.config['DATABASE_TIMEOUT']
    )
    qr_generator = QRGenerator(
        box_size=app.config['QR_CODE_BOX_SIZE'],
        border=app.config['QR_CODE_BORDER']
    )
    entity_store = EntityStore(db_manager)
    mode_controller = ModeController(db_manager)

    app.extensions['hackscan'] = {
        'db': db_manager,
        'qr_generator': qr_generator,
        'entity_store': entity_store,
        'mode_controller': mode_controller,
        'resolver': ScanResolver(entity_store, mode_controller),
        'confirmer': ScanConfirmer(entity_store, mode_controller),
        'participants': ParticipantManager(db_manager, qr_generator),
        'volunteers': VolunteerManager(db_manager, qr_generator),
        'teams': TeamManager(db_manager),
        'labs': LabManager(db_manager),
        'reports': ReportGenerator(db_manager),
    }

    register_error_handlers(app)
    register_scan_routes(app)
    register_admin_routes(app)

    logger.info(f"HackScan initialized with database {app.config['DATABASE_PATH']}")
    return app


def scanner_id(data=None):
    """Operator id from the scanner header, falling back to the request body."""
    header = (request.headers.get(current_app.config['SCANNER_ID_HEADER']) or '').strip()
    if header:
        return header
    body_id = ''
    if isinstance(data, dict) and data.get('scannerId') is not None:
        body_id = str(data['scannerId']).strip()
    return body_id or current_app.config['DEFAULT_SCANNER_ID']


def scan_response(result, success_status=200):
    """Serialize a scan engine result with the matching HTTP status."""
    if result.success:
        return jsonify(result.to_dict()), success_status
    return jsonify(result.to_dict()), REASON_STATUS.get(result.reason, 400)


def manager_response(result, success_status=200):
    """Serialize a roster manager result dict."""
    if result.get('success'):
        return jsonify(result), success_status

    error = result.get('error', 'Request failed')
    if error.lower().endswith('not found'):
        status = 404
    elif 'already exists' in error.lower():
        status = 409
    else:
        status = 400
    return jsonify({'success': False, 'message': error}), status


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Return JSON instead of HTML for HTTP errors"""
        return jsonify({
            'success': False,
            'message': error.description or error.name
        }), error.code

    @app.errorhandler(sqlite3.Error)
    def handle_database_error(error):
        logger.error(f"Database error on {request.method} {request.path}: {str(error)}")
        return jsonify({
            'success': False,
            'reason': ScanFailureReason.SYSTEM_ERROR,
            'message': FAILURE_MESSAGES[ScanFailureReason.SYSTEM_ERROR]
        }), 500


def register_scan_routes(app):
    services = app.extensions['hackscan']

    @app.route('/scan/preview', methods=['POST'])
    def scan_preview():
        """Resolve a badge to the action a scan would perform"""
        data = json_body()
        qr_hash = data.get('qrHash', data.get('qr_hash'))
        result = services['resolver'].resolve(qr_hash, scanner_id(data))
        return scan_response(result)

    @app.route('/scan/confirm', methods=['POST'])
    def scan_confirm():
        """Commit the action the operator accepted"""
        data = json_body()
        qr_hash = data.get('qrHash', data.get('qr_hash'))
        result = services['confirmer'].confirm(
            qr_hash,
            data.get('action'),
            meal_type=data.get('mealType'),
            actor_id=scanner_id(data)
        )
        return scan_response(result)

    @app.route('/mode', methods=['GET'])
    def get_mode():
        config = services['mode_controller'].get_mode()
        return jsonify({'success': True, **config.to_dict()})

    @app.route('/mode', methods=['PUT'])
    def set_mode():
        """Switch between attendance and meal redemption"""
        result = services['mode_controller'].set_mode(request.get_json(silent=True))
        if isinstance(result, ScanFailure):
            return scan_response(result)
        return jsonify({'success': True, **result.to_dict()})


def register_admin_routes(app):
    services = app.extensions['hackscan']
    participants = services['participants']
    volunteers = services['volunteers']
    reports = services['reports']

    @app.route('/health')
    def health():
        healthy, message = services['db'].check_health()
        return jsonify({'success': healthy, 'message': message}), 200 if healthy else 503

    @app.route('/stats')
    def stats():
        return jsonify({'success': True, **reports.get_stats()})

    @app.route('/scans/recent')
    def recent_scans():
        """Latest entry/exit scans for the dashboard feed"""
        limit = request.args.get('limit', app.config['RECENT_SCANS_DEFAULT_LIMIT'], type=int)
        if limit is None or limit <= 0:
            return jsonify({'success': False, 'message': 'limit must be a positive integer'}), 400
        limit = min(limit, app.config['RECENT_SCANS_MAX_LIMIT'])
        return jsonify({'success': True, 'scans': reports.get_recent_scans(limit)})

    # Participants

    @app.route('/participants', methods=['GET'])
    def list_participants():
        return jsonify({'success': True, 'participants': participants.get_all_participants()})

    @app.route('/participants', methods=['POST'])
    def create_participant():
        return manager_response(participants.create_participant(json_body()), 201)

    @app.route('/participants/<int:participant_id>', methods=['GET'])
    def get_participant(participant_id):
        participant = participants.get_participant(participant_id)
        if not participant:
            return jsonify({'success': False, 'message': 'Participant not found'}), 404
        return jsonify({'success': True, 'participant': participant})

    @app.route('/participants/<int:participant_id>', methods=['DELETE'])
    def delete_participant(participant_id):
        if not participants.delete_participant(participant_id):
            return jsonify({'success': False, 'message': 'Participant not found'}), 404
        return jsonify({'success': True, 'message': 'Participant deleted'})

    @app.route('/participants/<int:participant_id>/lab', methods=['PUT'])
    def update_participant_lab(participant_id):
        lab_id = json_body().get('labId')
        if not isinstance(lab_id, int) or isinstance(lab_id, bool):
            return jsonify({'success': False, 'message': 'labId must be an integer'}), 400
        return manager_response(participants.update_participant_lab(participant_id, lab_id))

    @app.route('/participants/<int:participant_id>/checkout', methods=['POST'])
    def checkout_participant(participant_id):
        return manager_response(participants.checkout_participant(participant_id))

    @app.route('/participants/checkout-all', methods=['POST'])
    def checkout_all_participants():
        count = participants.checkout_all_participants()
        return jsonify({
            'success': True,
            'count': count,
            'message': f"Checked out {count} participants"
        })

    @app.route('/participants/<int:participant_id>/qrcode', methods=['GET'])
    def participant_qrcode(participant_id):
        """Badge QR code as a PNG image"""
        participant = participants.get_participant(participant_id)
        if not participant:
            return jsonify({'success': False, 'message': 'Participant not found'}), 404

        png = services['qr_generator'].render_badge_png(
            participant['qr_code_hash'], label=participant['name']
        )
        return send_file(
            io.BytesIO(png),
            mimetype='image/png',
            download_name=f"participant_{participant_id}.png"
        )

    # Volunteers

    @app.route('/volunteers', methods=['GET'])
    def list_volunteers():
        return jsonify({'success': True, 'volunteers': volunteers.get_all_volunteers()})

    @app.route('/volunteers', methods=['POST'])
    def create_volunteer():
        return manager_response(volunteers.create_volunteer(json_body()), 201)

    @app.route('/volunteers/<int:volunteer_id>', methods=['DELETE'])
    def delete_volunteer(volunteer_id):
        if not volunteers.delete_volunteer(volunteer_id):
            return jsonify({'success': False, 'message': 'Volunteer not found'}), 404
        return jsonify({'success': True, 'message': 'Volunteer deleted'})

    @app.route('/volunteers/<int:volunteer_id>/checkout', methods=['POST'])
    def checkout_volunteer(volunteer_id):
        return manager_response(volunteers.checkout_volunteer(volunteer_id))

    @app.route('/volunteers/<int:volunteer_id>/generate-qr', methods=['POST'])
    def generate_volunteer_qr(volunteer_id):
        return manager_response(volunteers.generate_volunteer_qr(volunteer_id))

    # Teams and labs

    @app.route('/teams', methods=['GET'])
    def list_teams():
        return jsonify({'success': True, 'teams': services['teams'].get_all()})

    @app.route('/teams', methods=['POST'])
    def create_team():
        return manager_response(services['teams'].create(json_body(), created_by=scanner_id()), 201)

    @app.route('/labs', methods=['GET'])
    def list_labs():
        return jsonify({'success': True, 'labs': services['labs'].get_all()})

    @app.route('/labs', methods=['POST'])
    def create_lab():
        return manager_response(services['labs'].create(json_body()), 201)

    # Meals and reports

    @app.route('/meals/analytics')
    def meal_analytics():
        return jsonify({'success': True, **reports.get_meal_analytics()})

    @app.route('/meals/reset', methods=['POST'])
    def reset_meals():
        """Clear meal records for every meal or one meal type"""
        meal_type = json_body().get('mealType')
        return manager_response(reports.reset_meals(meal_type))

    @app.route('/reports/attendance.csv')
    def attendance_csv():
        export = reports.export_attendance_csv()
        return Response(
            export['content'],
            mimetype='text/csv',
            headers={'Content-Disposition': f"attachment; filename={export['filename']}"}
        )


if __name__ == '__main__':
    application = create_app()

    # Run the application
    application.run(
        debug=application.config['DEBUG'],
        host=os.environ.get('HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000))
    )
