"""
Detection REST API

Drives one DetectionOrchestrator per app over HTTP. A browser or
kiosk front-end starts the run, answers each interactive step, and
fetches the report. All endpoints return JSON responses.

Endpoints:
    GET  /api/detection/state                 - Run state, suspended step, ledger
    GET  /api/detection/steps                 - Step catalog
    POST /api/detection/start                 - Start the run
    POST /api/detection/steps/<id>/result     - Answer an interactive step
    POST /api/detection/steps/<id>/skip       - Skip an interactive step
    POST /api/detection/reset                 - Abandon the run
    GET  /api/detection/report                - Report JSON (after completion)
    POST /api/detection/report/save           - Save report to file
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from core.detection import (
    DetectionOrchestrator, IncompleteRunAccess, InvalidOutcome, ProtocolViolation,
    save_report,
)

logger = logging.getLogger(__name__)

detection_bp = Blueprint('detection', __name__, url_prefix='/detection')

ORCHESTRATOR_KEY = 'quickscan.orchestrator'


def _get_orchestrator() -> DetectionOrchestrator:
    return current_app.extensions[ORCHESTRATOR_KEY]


def _state_payload(orchestrator: DetectionOrchestrator) -> dict:
    state = orchestrator.state
    step = orchestrator.suspended_step
    return {
        'phase': state.phase.value,
        'suspended_step': step.id if step else None,
        'suspended_category': step.category.value if step else None,
        'ledger': {step_id: entry.to_dict() for step_id, entry in orchestrator.ledger.items()},
    }


def _violation_response(error: ProtocolViolation):
    status = 400 if isinstance(error, InvalidOutcome) else 409
    return jsonify({
        'error': str(error),
        'expected': error.expected,
        'received': error.received,
    }), status


@detection_bp.route('/state')
def get_state():
    """Current run state and ledger."""
    return jsonify(_state_payload(_get_orchestrator()))


@detection_bp.route('/steps')
def get_steps():
    """List the step catalog in execution order."""
    orchestrator = _get_orchestrator()
    return jsonify({
        'count': len(orchestrator.steps),
        'steps': [
            {'id': s.id, 'name': s.name, 'category': s.category.value, 'interactive': s.interactive}
            for s in orchestrator.steps
        ],
    })


@detection_bp.route('/start', methods=['POST'])
def start():
    """Start the run; returns once it suspends or completes."""
    orchestrator = _get_orchestrator()
    try:
        orchestrator.start()
    except ProtocolViolation as e:
        return _violation_response(e)
    return jsonify(_state_payload(orchestrator))


@detection_bp.route('/steps/<step_id>/result', methods=['POST'])
def submit_result(step_id: str):
    """Resume the suspended step with the JSON body as its outcome."""
    orchestrator = _get_orchestrator()
    outcome = request.get_json(silent=True)
    if outcome is None:
        return jsonify({'error': 'JSON outcome body required'}), 400

    try:
        orchestrator.resume_with_result(step_id, outcome)
    except ProtocolViolation as e:
        return _violation_response(e)
    return jsonify(_state_payload(orchestrator))


@detection_bp.route('/steps/<step_id>/skip', methods=['POST'])
def skip_step(step_id: str):
    """Skip the suspended step."""
    orchestrator = _get_orchestrator()
    try:
        orchestrator.resume_with_skip(step_id)
    except ProtocolViolation as e:
        return _violation_response(e)
    return jsonify(_state_payload(orchestrator))


@detection_bp.route('/reset', methods=['POST'])
def reset():
    """Abandon the current run."""
    orchestrator = _get_orchestrator()
    orchestrator.reset()
    return jsonify(_state_payload(orchestrator))


@detection_bp.route('/report')
def get_report():
    """Full report JSON."""
    try:
        report = _get_orchestrator().report
    except IncompleteRunAccess as e:
        return jsonify({'error': str(e), 'state': e.state}), 409
    return jsonify(report.to_dict())


@detection_bp.route('/report/save', methods=['POST'])
def save():
    """Save the report under the configured report directory."""
    try:
        report = _get_orchestrator().report
    except IncompleteRunAccess as e:
        return jsonify({'error': str(e), 'state': e.state}), 409

    data = request.get_json(silent=True) or {}
    try:
        path = save_report(report, current_app.config['QUICKSCAN_REPORT_DIR'], data.get('filename'))
    except OSError as e:
        logger.error(f"Failed to save report: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify({'success': True, 'path': str(path)})
