"""
Defect Scan Web Application

A web-based tool for finding regions of an image whose brightness
deviates from the image's global mean.
"""

from flask import Flask
from flask_cors import CORS

from .core import AnalysisSession, DetectionParams
from .core.detector import MAX_EDGE_POINTS

__version__ = "1.0.0"


def create_app(config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Enable CORS for API endpoints
    CORS(app)

    # Default configuration
    app.config['MAX_CONTENT_LENGTH'] = 50 * 1024 * 1024  # 50MB max upload
    app.config['MAX_EDGE_POINTS'] = MAX_EDGE_POINTS
    app.config['DEFAULT_MIN_SPOT_SIZE_PX'] = 40
    app.config['DEFAULT_MIN_CONTRAST_PERCENT'] = 12.0

    # Apply custom config
    if config:
        app.config.update(config)

    # One analysis session per application instance
    default_params = DetectionParams(
        min_spot_size_px=app.config['DEFAULT_MIN_SPOT_SIZE_PX'],
        min_contrast_percent=app.config['DEFAULT_MIN_CONTRAST_PERCENT'],
    )
    app.extensions['defectscan.session'] = AnalysisSession(default_params)

    # Register API blueprint
    from .api import api
    app.register_blueprint(api, url_prefix='/api')

    return app
