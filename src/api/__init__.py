"""
QuickScan REST API

Flask blueprints for API endpoints.

Usage:
    from api import create_app
    app = create_app()
    app.run(port=8470)
"""

from typing import Optional

from flask import Blueprint, Flask

from core.detection import DetectionOrchestrator, DetectionSettings, IssueTextCatalog, ProbeSet

from .detection import ORCHESTRATOR_KEY, detection_bp

# Create main API blueprint
api_bp = Blueprint('api', __name__, url_prefix='/api')
api_bp.register_blueprint(detection_bp)


def create_app(
    probes: Optional[ProbeSet] = None,
    settings: Optional[DetectionSettings] = None,
    text_catalog: Optional[IssueTextCatalog] = None,
    report_dir: Optional[str] = None,
) -> Flask:
    """
    Build the API app with its own orchestrator.

    Without arguments the host probes and environment configuration
    are used.
    """
    from utils import config

    if probes is None:
        from probes import HostProbes
        probes = HostProbes.default()
    if settings is None:
        settings = config.detection_settings()
    if text_catalog is None:
        text_catalog = IssueTextCatalog.load(config.TEXT_CATALOG)

    app = Flask(__name__)
    app.config['QUICKSCAN_REPORT_DIR'] = str(report_dir or config.REPORT_DIR)
    app.extensions[ORCHESTRATOR_KEY] = DetectionOrchestrator(
        probes, settings=settings, text_catalog=text_catalog
    )
    app.register_blueprint(api_bp)
    return app


__all__ = ['api_bp', 'detection_bp', 'create_app']
