"""
Video transcription through the Gemini API.
"""

import logging
import mimetypes
import time
from pathlib import Path

import google.generativeai as genai

from app.core.config import settings

logger = logging.getLogger(__name__)

EMPTY_TRANSCRIPT = "No transcription generated"

# How long to wait for Gemini to finish processing an uploaded video
UPLOAD_POLL_INTERVAL = 2  # seconds
UPLOAD_TIMEOUT = 300  # seconds


class TranscriptError(Exception):
    """Raised when a transcript cannot be generated"""
    pass


def _mime_type(video_path: Path) -> str:
    if video_path.suffix.lower() == ".mp4":
        return "video/mp4"
    return mimetypes.guess_type(video_path.name)[0] or "video/quicktime"


def _wait_until_active(uploaded):
    deadline = time.monotonic() + UPLOAD_TIMEOUT
    while uploaded.state.name == "PROCESSING":
        if time.monotonic() > deadline:
            raise TranscriptError(f"Timed out waiting for Gemini to process {uploaded.name}")
        time.sleep(UPLOAD_POLL_INTERVAL)
        uploaded = genai.get_file(uploaded.name)
    if uploaded.state.name != "ACTIVE":
        raise TranscriptError(f"Gemini could not process {uploaded.name}: {uploaded.state.name}")
    return uploaded


def generate_transcript(video_path: str) -> str:
    """
    Transcribe a local video file with timecodes and speaker labels.

    Args:
        video_path: Local filesystem path of the video

    Returns:
        str: Transcript text, formatted as "[MM:SS] Speaker: Text" lines

    Raises:
        TranscriptError: If the file is missing or the API call fails
    """
    path = Path(video_path)
    if not path.exists():
        raise TranscriptError(f"Video file not found: {video_path}")

    if not settings.GEMINI_API_KEY:
        raise TranscriptError("GEMINI_API_KEY is not configured")

    genai.configure(api_key=settings.GEMINI_API_KEY)

    try:
        uploaded = genai.upload_file(str(path), mime_type=_mime_type(path))
        uploaded = _wait_until_active(uploaded)

        model = genai.GenerativeModel(settings.GEMINI_MODEL)
        response = model.generate_content([uploaded, settings.TRANSCRIPT_PROMPT])
        transcript = response.text
    except TranscriptError:
        raise
    except Exception as e:
        logger.error(f"Transcription error for {video_path}: {e}")
        raise TranscriptError(f"Failed to generate transcript: {e}") from e

    return transcript.strip() or EMPTY_TRANSCRIPT
