"""Twilio integration modules"""
from .handlers import listen_for_stream
from .models import ParseFailure, parse_twilio_message
from .outbound import build_mark_message, build_media_message
from .stream import run_stream_session
from .twiml import build_play_twiml, build_say_and_connect_twiml

__all__ = [
    "build_mark_message",
    "build_media_message",
    "build_play_twiml",
    "build_say_and_connect_twiml",
    "listen_for_stream",
    "parse_twilio_message",
    "ParseFailure",
    "run_stream_session",
]
