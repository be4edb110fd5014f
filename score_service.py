"""
Score write path.

Posts one score record to the Apps Script endpoint as a JSON envelope:

    {"action": "addScore" | "updateScore" | "deleteScore", "data": {...}}

The body is declared as text/plain because the Apps Script endpoint only
exposes the raw body (e.postData.contents) for simple cross-origin requests.
The endpoint answers {"success": bool, "message": str?}.

Mutations are neither queued nor deduplicated. Callers refetch the score
table afterwards to reconcile what they display.
"""

import json
import logging
from typing import Dict, Any, Optional

import requests

from config import REQUEST_TIMEOUT, WEB_APP_URL

logger = logging.getLogger(__name__)

SCORE_FIELDS = ["Student ID", "Category", "Item Name", "Score", "Date", "Notes"]

# Required form selections, checked before any network call
REQUIRED_FIELDS = ["Student ID", "Item Name", "Score"]

# action -> (success fallback, failure fallback)
ACTIONS = {
    "addScore": (
        "Penilaian berhasil dikirim!",
        "Terjadi kesalahan di server, namun server tidak memberikan detail.",
    ),
    "updateScore": (
        "Penilaian berhasil diupdate!",
        "Terjadi kesalahan di server.",
    ),
    "deleteScore": (
        "Penilaian berhasil dihapus!",
        "Terjadi kesalahan di server.",
    ),
}

VALIDATION_MESSAGE = "Silakan lengkapi semua pilihan: siswa, item, dan penilaian."


class ValidationError(ValueError):
    """A required form selection is missing."""


class ScoreWriteError(RuntimeError):
    """The endpoint could not be reached, or it rejected the command."""

    def __init__(self, action: str, message: str):
        super().__init__(message)
        self.action = action


def validate_score(score: Dict[str, Any]) -> None:
    """Raise ValidationError unless student, item and score level are all selected."""
    for field in REQUIRED_FIELDS:
        if not str(score.get(field) or '').strip():
            raise ValidationError(VALIDATION_MESSAGE)


def new_score(student_id: str = '', category: str = '', item_name: str = '',
              score: str = '', date: str = '', notes: str = '') -> Dict[str, str]:
    """Build a Score-shaped record (no Timestamp: assigned by the server)."""
    return {
        "Student ID": student_id,
        "Category": category,
        "Item Name": item_name,
        "Score": score,
        "Date": date,
        "Notes": notes,
    }


def post_command(action: str, data: Dict[str, Any], url: Optional[str] = None) -> Dict[str, Any]:
    """
    Send one command and return the acknowledgement.

    Returns:
        {"success": True, "message": <server message or fallback>}

    Raises:
        ScoreWriteError: transport failure, non-success status, unreadable
            reply, or success: false
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action!r}")

    success_fallback, failure_fallback = ACTIONS[action]
    body = json.dumps({"action": action, "data": data})

    try:
        response = requests.post(
            url or WEB_APP_URL,
            data=body.encode('utf-8'),
            headers={"Content-Type": "text/plain;charset=utf-8"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("Failed to %s: %s", action, e)
        raise ScoreWriteError(action, str(e)) from e

    if not 200 <= response.status_code < 300:
        message = f"Server responded with an error: {response.status_code} {response.reason}"
        logger.error("Failed to %s: %s", action, message)
        raise ScoreWriteError(action, message)

    try:
        result = response.json()
    except ValueError as e:
        logger.error("Failed to %s: unreadable reply: %s", action, e)
        raise ScoreWriteError(action, failure_fallback) from e

    if not isinstance(result, dict) or not result.get("success"):
        message = (result.get("message") if isinstance(result, dict) else None) or failure_fallback
        logger.error("Failed to %s: %s", action, message)
        raise ScoreWriteError(action, message)

    return {"success": True, "message": result.get("message") or success_fallback}


def add_score(score: Dict[str, Any], url: Optional[str] = None) -> Dict[str, Any]:
    """Validate and submit a new score (Timestamp is dropped; the server assigns it)."""
    validate_score(score)
    data = {field: score.get(field, '') for field in SCORE_FIELDS}
    return post_command("addScore", data, url=url)


def update_score(score: Dict[str, Any], timestamp: str, url: Optional[str] = None) -> Dict[str, Any]:
    """Validate and submit an edited score, identified by its original Timestamp."""
    validate_score(score)
    data = {field: score.get(field, '') for field in SCORE_FIELDS}
    data["Timestamp"] = timestamp or ''
    return post_command("updateScore", data, url=url)


def delete_score(score: Dict[str, Any], url: Optional[str] = None) -> Dict[str, Any]:
    """Delete a persisted score; the record is sent as read from the table."""
    return post_command("deleteScore", dict(score), url=url)
