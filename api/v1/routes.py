"""
API routes for the image studio, v1.
Stateless JSON counterparts of the editor and generator panels.
"""

from flask import Blueprint, current_app, request, jsonify
import time
import logging
import os

from api.v1.validation import (
    ValidationError,
    validate_encoded_image,
    validate_image_edit_payload,
    validate_image_generation_payload,
    validate_prompt,
)
from utils.providers.base import ImageServiceError
from utils.vision.file_encoder import encode_file, split_data_url
from utils.vision.image_generator import LocalImageGenerator

IMAGE_SERVICE_EXTENSION = "imagestudio.image_service"
DEFAULT_ACCEPTED_MIME_TYPES = ("image/png", "image/jpeg", "image/webp")

ENVIRONMENT = os.getenv('ENVIRONMENT', 'dev')
SERVICE_NAME = os.getenv('SERVICE_NAME', '').strip() or 'imagestudio'

logger = logging.getLogger('imagestudio.api.v1.routes')
if ENVIRONMENT == 'prod':
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


def log_info(message, **extra):
    """Log info only in non-production environments"""
    if ENVIRONMENT != 'prod':
        logger.info(message, extra=extra or None)


def log_warning(message, **extra):
    """Log warnings only in non-production environments"""
    if ENVIRONMENT != 'prod':
        logger.warning(message, extra=extra or None)


def log_error(message, exc_info=False, **extra):
    """Log errors only in non-production environments"""
    if ENVIRONMENT != 'prod':
        logger.error(message, exc_info=exc_info, extra=extra or None)


v1_bp = Blueprint('v1', __name__, url_prefix='/api/v1')


def format_error_response(message, error_type="invalid_request_error", param=None, code=None, status_code=400):
    """Format an error response in a standardized way for the API"""
    error_obj = {
        "error": {
            "message": message,
            "type": error_type,
        }
    }

    if param is not None:
        error_obj["error"]["param"] = param

    if code is not None:
        error_obj["error"]["code"] = code

    response = jsonify(error_obj)
    response.status_code = status_code
    return response


def _image_service():
    service = current_app.extensions.get(IMAGE_SERVICE_EXTENSION)
    if service is None:
        raise RuntimeError("No image service configured for this application")
    return service


def _accepted_mime_types():
    return current_app.config.get("ACCEPTED_MIME_TYPES") or DEFAULT_ACCEPTED_MIME_TYPES


def _image_response(reference, prompt):
    image = split_data_url(reference)
    return jsonify({
        "created": int(time.time()),
        "data": [{
            "b64_json": image.payload,
            "mime_type": image.mime_type,
            "revised_prompt": prompt,
        }],
    })


def _service_error_response(exc: ImageServiceError, operation: str):
    log_warning(
        "api.image_service.failed",
        operation=operation,
        upstream_status=exc.status_code,
    )
    return format_error_response(
        exc.message or str(exc),
        error_type="api_error",
        code="image_service_error",
        status_code=502,
    )


@v1_bp.route('/images/generations', methods=['POST'])
def create_image_generation():
    """
    Generate an image from a prompt.

    Request body: ``{"prompt": "..."}``
    Returns: ``{"created": ..., "data": [{"b64_json", "mime_type", "revised_prompt"}]}``
    """
    try:
        payload = validate_image_generation_payload(request.get_json(silent=True))
    except ValidationError as e:
        log_warning("api.validation_failed", field=e.field)
        return format_error_response(e.message, param=e.field, code=e.code)

    log_info("api.images.generations", prompt_chars=len(payload["prompt"]))
    try:
        reference = _image_service().generate_image(payload["prompt"])
    except ImageServiceError as exc:
        return _service_error_response(exc, "generate")
    except Exception as e:
        log_error("Error in create_image_generation endpoint", exc_info=True)
        return format_error_response(f"Internal server error: {str(e)}", error_type="server_error", status_code=500)

    return _image_response(reference, payload["prompt"])


@v1_bp.route('/images/edits', methods=['POST'])
def create_image_edit():
    """
    Edit an image with a prompt.

    Accepts multipart form data (``image`` file and ``prompt`` field) or JSON
    (``{"image": {"b64_json", "mime_type"} | {"data_url"}, "prompt"}``).
    """
    accepted = _accepted_mime_types()
    try:
        if request.files or request.form:
            upload = request.files.get("image")
            if upload is None:
                raise ValidationError("Missing required parameter: image", field="image")
            prompt = validate_prompt(request.form.to_dict())
            image = validate_encoded_image(encode_file(upload), accepted)
        else:
            payload = validate_image_edit_payload(request.get_json(silent=True), accepted)
            image, prompt = payload["image"], payload["prompt"]
    except ValidationError as e:
        log_warning("api.validation_failed", field=e.field)
        return format_error_response(e.message, param=e.field, code=e.code)

    log_info("api.images.edits", mime_type=image.mime_type, prompt_chars=len(prompt))
    try:
        reference = _image_service().edit_image(image, prompt)
    except ImageServiceError as exc:
        return _service_error_response(exc, "edit")
    except Exception as e:
        log_error("Error in create_image_edit endpoint", exc_info=True)
        return format_error_response(f"Internal server error: {str(e)}", error_type="server_error", status_code=500)

    return _image_response(reference, prompt)


@v1_bp.route('/health', methods=['GET'])
def health_check():
    """Report service status and whether the offline generator is in use."""
    service = current_app.extensions.get(IMAGE_SERVICE_EXTENSION)
    return jsonify({
        "status": "ok" if service is not None else "degraded",
        "service": SERVICE_NAME,
        "version": "v1",
        "mock": isinstance(service, LocalImageGenerator),
        "timestamp": int(time.time()),
    })
