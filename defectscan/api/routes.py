"""
Flask API for Defect Detection

Provides REST endpoints for uploading an image, adjusting detection
parameters, and running the analysis.
"""

import base64
import logging

import cv2
import numpy as np
from flask import Blueprint, request, jsonify, current_app

from ..core import (
    AnalysisSession,
    DefectDetector,
    DetectionError,
    DetectionParams,
    ParameterOutOfRangeError,
)
from ..core.detector import decode_image
from ..core.overlay import render_overlay
from .. import __version__

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'bmp', 'tiff', 'tif', 'webp'}


class RequestError(Exception):
    """Request rejected before any processing."""


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def get_session() -> AnalysisSession:
    return current_app.extensions['defectscan.session']


def encode_image_base64(image: np.ndarray, format: str = '.png') -> str:
    """Encode numpy image to base64 string."""
    _, buffer = cv2.imencode(format, image)
    return base64.b64encode(buffer).decode('utf-8')


def read_uploaded_image():
    """Return the decoded image from the request, or None if none was sent."""
    if 'file' in request.files:
        file = request.files['file']
        if file.filename == '':
            raise RequestError("No file selected")
        if not allowed_file(file.filename):
            raise RequestError("Invalid file type")
        data = file.read()
    else:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict) or 'image' not in payload:
            return None
        try:
            data = base64.b64decode(payload['image'], validate=True)
        except (TypeError, ValueError) as e:
            raise RequestError(f"Failed to decode image: {e}")

    image = decode_image(data)
    if image is None:
        raise RequestError("Failed to load image")
    return image


def parse_params(data, base: DetectionParams) -> DetectionParams:
    """Merge request values into base parameters, coercing form strings."""
    merged = base.to_dict()
    casts = {"min_spot_size_px": int, "min_contrast_percent": float}
    for key, cast in casts.items():
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, str):
            try:
                value = cast(value)
            except ValueError:
                raise ParameterOutOfRangeError(f"{key} must be a number, got {value!r}")
        merged[key] = value
    params = DetectionParams.from_dict(merged)
    params.validate()
    return params


def request_options():
    """Parameters and flags from JSON body, form fields, or query string."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    options = request.args.to_dict()
    options.update(request.form.to_dict())
    return options


def is_true(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ('0', 'false', 'no', 'off', '')
    return bool(value)


@api.errorhandler(RequestError)
@api.errorhandler(DetectionError)
def handle_bad_request(e):
    logger.warning(f"Rejected request to {request.path}: {e}")
    return jsonify({"error": str(e)}), 400


@api.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "version": __version__})


@api.route('/params', methods=['GET'])
def get_params():
    """Get current detection parameters."""
    return jsonify(get_session().params.to_dict())


@api.route('/params', methods=['POST'])
def set_params():
    """Update detection parameters."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "No JSON data provided"}), 400

    session = get_session()
    params = parse_params(data, session.params)
    generation = session.set_params(params)
    return jsonify({"status": "success", "params": params.to_dict(), "generation": generation})


@api.route('/params/reset', methods=['POST'])
def reset_params():
    """Reset parameters to defaults."""
    session = get_session()
    generation = session.reset_params()
    return jsonify({"status": "success", "params": session.params.to_dict(), "generation": generation})


@api.route('/image', methods=['POST'])
def upload_image():
    """Upload the image to analyze."""
    image = read_uploaded_image()
    if image is None:
        return jsonify({"error": "No image provided"}), 400

    generation = get_session().set_image(image)
    height, width = image.shape[:2]
    logger.info(f"Loaded {width}x{height} image (generation {generation})")
    return jsonify({
        "status": "success",
        "width": width,
        "height": height,
        "generation": generation,
    })


@api.route('/image', methods=['DELETE'])
def clear_image():
    """Forget the current image, parameters and result."""
    get_session().reset()
    return jsonify({"status": "success"})


@api.route('/detect', methods=['POST'])
def detect_defects():
    """Run defect detection on the current (or an uploaded) image."""
    session = get_session()

    # Read and check everything before touching the session
    image = read_uploaded_image()
    options = request_options()
    params = None
    if any(k in options for k in ("min_spot_size_px", "min_contrast_percent")):
        params = parse_params(options, session.params)

    if image is not None:
        session.set_image(image)
    if params is not None:
        session.set_params(params)

    generation, image, params = session.begin()
    if image is None:
        return jsonify({"error": "No image set. Upload an image first."}), 400

    detector = DefectDetector(max_edge_points=current_app.config['MAX_EDGE_POINTS'])
    result = detector.detect(image, params)
    committed = session.commit(generation, result)

    response = {
        "status": "success",
        "generation": generation,
        "committed": committed,
        "result": result.to_dict(include_edges=is_true(options.get('edges', True))),
    }
    if is_true(options.get('overlay', True)):
        response["overlay"] = encode_image_base64(render_overlay(image, result))

    return jsonify(response)


@api.route('/result', methods=['GET'])
def get_result():
    """Return the most recent committed result."""
    result = get_session().result
    if result is None:
        return jsonify({"error": "No result available"}), 404
    return jsonify({
        "status": "success",
        "generation": get_session().result_generation,
        "result": result.to_dict(include_edges=is_true(request.args.get('edges', True))),
    })
