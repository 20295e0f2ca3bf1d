"""Domain errors and their JSON rendering.

Services raise these; routes let them propagate; the handlers registered
by :func:`register_error_handlers` turn them into ``{"error": ...}``
responses with a short, sanitized message.
"""

import logging
import re

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

KEY_ERROR_MESSAGE = (
    "Gemini API key invalid or not enabled. Get a key at "
    "https://aistudio.google.com/apikey and turn on the Generative Language API."
)
MAX_MESSAGE_LENGTH = 200

# Google API keys start with "AIza"; also catch "key=..." query fragments.
_KEY_PATTERN = re.compile(r"(AIza[0-9A-Za-z_\-]{10,}|key=[^&\s\"']+)")


class PhishGuardError(Exception):
    status_code = 500
    default_message = "Request failed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFound(PhishGuardError):
    status_code = 404
    default_message = "Not found."


class ValidationError(PhishGuardError):
    status_code = 400
    default_message = "Invalid input."


class UpstreamGenerationError(PhishGuardError):
    status_code = 502
    default_message = "AI request failed."

    def __init__(self, message=None):
        super().__init__(sanitize_provider_error(message))


class StoreError(PhishGuardError):
    status_code = 500
    default_message = "Could not save your progress. Please try again."


class ConflictError(StoreError):
    status_code = 409
    default_message = "Record already exists."


def sanitize_provider_error(msg) -> str:
    if not msg or not isinstance(msg, str):
        return UpstreamGenerationError.default_message
    if ".env" in msg or "API key" in msg or "API_KEY" in msg:
        return KEY_ERROR_MESSAGE
    msg = _KEY_PATTERN.sub("[redacted]", msg)
    if len(msg) > MAX_MESSAGE_LENGTH:
        return msg[:MAX_MESSAGE_LENGTH] + "…"
    return msg


def register_error_handlers(app):
    @app.errorhandler(PhishGuardError)
    def handle_domain_error(err):
        if err.status_code >= 500:
            logger.warning("%s: %s", type(err).__name__, err.message)
        return jsonify({"error": err.message}), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"error": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error."}), 500
