"""
Shared FastAPI dependencies.

Collaborators are created once in the app lifespan and stored on app.state;
routes get them through these functions so tests can override them.
"""
from starlette.requests import HTTPConnection

from src.audio.diagnostics import DiagnosticsSink, NULL_SINK
from src.tts.client import GoogleTTSClient
from src.tts.stream import UtteranceSource


def get_tts_client(connection: HTTPConnection) -> GoogleTTSClient:
    return connection.app.state.tts_client


def get_utterance_source(connection: HTTPConnection) -> UtteranceSource:
    """TTSStream or PrerecordedUtterance, depending on TTS_ENGINE."""
    return connection.app.state.utterance_source


def get_diagnostics(connection: HTTPConnection) -> DiagnosticsSink:
    return getattr(connection.app.state, "diagnostics", NULL_SINK)
