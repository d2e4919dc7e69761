import asyncio
import json
import os
import tempfile

import pytest

# Must be set before anything imports src.config (settings are built at import time)
_BASE_FILE_DIR = tempfile.mkdtemp(prefix="stream-bridge-test-")
os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = os.path.join(_BASE_FILE_DIR, "service-account.json")
os.environ["BASE_FILE_DIR"] = _BASE_FILE_DIR


class FakeWebSocket:
    """
    Stand-in for a FastAPI WebSocket driven by the test.

    receive() yields ASGI messages queued with push_text()/push_bytes()/
    disconnect(). close() behaves like a peer acknowledging the close.
    """

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.closed_with = None
        self.sent_event = asyncio.Event()

    def push_text(self, text: str):
        self.incoming.put_nowait({"type": "websocket.receive", "text": text})

    def push_json(self, data: dict):
        self.push_text(json.dumps(data))

    def push_bytes(self, data: bytes):
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code: int = 1000):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    async def receive(self) -> dict:
        return await self.incoming.get()

    async def send_text(self, data: str):
        self.sent.append(data)
        self.sent_event.set()

    async def close(self, code: int = 1000):
        self.closed_with = code
        self.disconnect(code)


class TwilioFrames:
    """Builders for inbound Twilio Media Streams events."""

    @staticmethod
    def connected() -> dict:
        return {"event": "connected", "protocol": "Call", "version": "1.0.0"}

    @staticmethod
    def start(stream_sid: str = "MZ0001", nested_sid: str = None, sequence: str = "1") -> dict:
        return {
            "event": "start",
            "sequenceNumber": sequence,
            "streamSid": stream_sid,
            "start": {
                "streamSid": nested_sid or stream_sid,
                "accountSid": "AC0001",
                "callSid": "CA0001",
                "tracks": ["inbound"],
                "customParameters": {"campaign": "test"},
                "mediaFormat": {"encoding": "audio/x-mulaw", "sampleRate": 8000, "channels": 1},
            },
        }

    @staticmethod
    def media(stream_sid: str = "MZ0001", sequence: str = "2", chunk: str = "1") -> dict:
        return {
            "event": "media",
            "sequenceNumber": sequence,
            "streamSid": stream_sid,
            "media": {"track": "inbound", "chunk": chunk, "timestamp": "5", "payload": "//8="},
        }

    @staticmethod
    def stop(stream_sid: str = "MZ0001", sequence: str = "9") -> dict:
        return {
            "event": "stop",
            "sequenceNumber": sequence,
            "streamSid": stream_sid,
            "stop": {"accountSid": "AC0001", "callSid": "CA0001"},
        }

    @staticmethod
    def mark(name: str = "utterance-complete", stream_sid: str = "MZ0001", sequence: str = "8") -> dict:
        return {
            "event": "mark",
            "sequenceNumber": sequence,
            "streamSid": stream_sid,
            "mark": {"name": name},
        }


class FakeUtteranceSource:
    """Returns fixed raw samples (or raises) instead of synthesizing."""

    def __init__(self, samples: bytes = b"\xff" * 160, error: Exception = None):
        self.samples = samples
        self.error = error
        self.calls: list[str] = []

    async def generate(self, text: str) -> bytes:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.samples


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def frames():
    return TwilioFrames


@pytest.fixture
def utterance_source():
    return FakeUtteranceSource()


@pytest.fixture
def make_utterance_source():
    return FakeUtteranceSource


@pytest.fixture
def base_file_dir():
    return _BASE_FILE_DIR
