"""
Input validation utilities for the image studio API
"""

import base64
import binascii
from typing import Any, Dict, Iterable, List, Optional

from utils.vision.file_encoder import EncodedImage, split_data_url

MAX_PROMPT_LENGTH = 4000


class ValidationError(Exception):
    """Exception raised for validation errors."""
    def __init__(self, message: str, field: Optional[str] = None, code: str = "invalid_request_error"):
        self.message = message
        self.field = field
        self.code = code
        super().__init__(self.message)


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> None:
    """
    Validate that all required fields are present in the data.

    Raises:
        ValidationError: If any required field is missing
    """
    for field in required_fields:
        if field not in data:
            raise ValidationError(f"Missing required parameter: {field}", field=field)


def validate_field_type(data: Dict[str, Any], field: str, expected_type: type,
                        allow_none: bool = False) -> None:
    """
    Validate that a field is of the expected type.

    Raises:
        ValidationError: If field is of wrong type
    """
    if field not in data:
        return

    value = data[field]

    if value is None and allow_none:
        return

    if not isinstance(value, expected_type):
        raise ValidationError(
            f"Invalid type for {field}: expected {expected_type.__name__}",
            field=field
        )


def validate_string_length(data: Dict[str, Any], field: str,
                           min_length: Optional[int] = None,
                           max_length: Optional[int] = None) -> None:
    """
    Validate string length within specified bounds.

    Raises:
        ValidationError: If string length is outside bounds
    """
    if field not in data or not isinstance(data[field], str):
        return

    length = len(data[field])

    if min_length is not None and length < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters",
            field=field
        )

    if max_length is not None and length > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters",
            field=field
        )


def validate_base64(data: Dict[str, Any], field: str) -> None:
    """Validate that a field contains strict base64 data.

    Raises:
        ValidationError: If field does not contain valid base64
    """
    if field not in data or not isinstance(data[field], str):
        return

    try:
        base64.b64decode(data[field], validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(
            f"Invalid base64 encoding for {field}",
            field=field
        )


def validate_mime_type(mime_type: str, accepted: Iterable[str], field: str = "image") -> str:
    """Return the normalised MIME type, rejecting anything not in ``accepted``."""
    normalised = (mime_type or "").split(";", 1)[0].strip().lower()
    allowed = [entry.lower() for entry in accepted]
    if normalised not in allowed:
        raise ValidationError(
            f"Unsupported image type '{normalised or 'unknown'}'; expected one of: {', '.join(allowed)}",
            field=field,
        )
    return normalised


def validate_prompt(data: Dict[str, Any]) -> str:
    """Return the stripped prompt, which must be a non-empty string."""

    validate_required_fields(data, ["prompt"])
    validate_field_type(data, "prompt", str)
    validate_string_length(data, "prompt", max_length=MAX_PROMPT_LENGTH)

    prompt = data["prompt"].strip()
    if not prompt:
        raise ValidationError("prompt must be a non-empty string", field="prompt")
    return prompt


def validate_image_generation_payload(data: Any) -> Dict[str, Any]:
    """Validate and normalise payloads for the image generation endpoint."""

    if not isinstance(data, dict):
        raise ValidationError("Invalid request body: expected a JSON object")

    return {"prompt": validate_prompt(data)}


def validate_encoded_image(image: EncodedImage, accepted: Iterable[str]) -> EncodedImage:
    """Check an uploaded image's payload and declared type."""

    if image.is_empty:
        raise ValidationError("image must contain data", field="image")

    validate_base64({"image": image.payload}, "image")
    mime_type = validate_mime_type(image.mime_type, accepted)
    return EncodedImage(payload=image.payload, mime_type=mime_type)


def validate_image_edit_payload(data: Any, accepted: Iterable[str]) -> Dict[str, Any]:
    """Validate a JSON edit request.

    The ``image`` object carries either ``b64_json`` plus ``mime_type`` or a
    ``data_url`` from which both are taken.
    """

    if not isinstance(data, dict):
        raise ValidationError("Invalid request body: expected a JSON object")

    validate_required_fields(data, ["image"])
    validate_field_type(data, "image", dict)
    prompt = validate_prompt(data)

    image_data = data["image"]
    data_url = image_data.get("data_url")
    if isinstance(data_url, str) and data_url.strip():
        image = split_data_url(data_url, image_data.get("mime_type") or "")
    else:
        validate_required_fields(image_data, ["b64_json"])
        validate_field_type(image_data, "b64_json", str)
        validate_field_type(image_data, "mime_type", str, allow_none=True)
        image = EncodedImage(
            payload=image_data["b64_json"].strip(),
            mime_type=image_data.get("mime_type") or "",
        )

    return {"image": validate_encoded_image(image, accepted), "prompt": prompt}
