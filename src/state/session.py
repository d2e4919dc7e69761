"""
Per-connection stream session state.

Phases:
- IDLE: WebSocket accepted, classifier not yet reading
- AWAITING_START: Reading frames, waiting for Twilio's 'start' event
- STARTED: streamSid known, audio may be sent
- CLOSED: Transport closed
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from src.twilio.models import MediaFormat, StartEvent

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    """Stream session lifecycle phases"""
    IDLE = "idle"
    AWAITING_START = "awaiting_start"
    STARTED = "started"
    CLOSED = "closed"


@dataclass
class StreamSession:
    """
    State for one media stream, owned by a single WebSocket connection.

    Identifiers are filled in from the 'start' event.
    """
    phase: SessionPhase = SessionPhase.IDLE
    stream_sid: Optional[str] = None
    account_sid: Optional[str] = None
    call_sid: Optional[str] = None
    tracks: List[str] = field(default_factory=list)
    custom_parameters: Dict[str, str] = field(default_factory=dict)
    media_format: Optional[MediaFormat] = None
    started_at: Optional[datetime] = None
    stopped: bool = False

    # Frame tracking
    media_frames_received: int = 0
    parse_failures: int = 0

    def on_start(self, event: StartEvent) -> str:
        """
        Record session metadata from a 'start' event.

        The top-level streamSid is the one kept. A mismatch with the
        nested start.streamSid is logged, not rejected.

        Returns:
            The streamSid to use for all outbound messages
        """
        meta = event.start
        if meta.streamSid != event.streamSid:
            logger.warning(
                f"Start event streamSid mismatch: top-level={event.streamSid}, "
                f"start.streamSid={meta.streamSid}"
            )

        self.stream_sid = event.streamSid
        self.account_sid = meta.accountSid
        self.call_sid = meta.callSid
        self.tracks = list(meta.tracks)
        self.custom_parameters = dict(meta.customParameters)
        self.media_format = meta.mediaFormat
        self.started_at = datetime.now()
        self.phase = SessionPhase.STARTED
        return self.stream_sid

    def close(self):
        self.phase = SessionPhase.CLOSED


class StreamSidHandoff:
    """
    Single-use channel carrying the streamSid from the reader to the sender.

    deliver() succeeds at most once. close() without a prior deliver()
    resolves the waiting side with None instead of leaving it blocked.
    """

    def __init__(self):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def deliver(self, stream_sid: str):
        if self._future.done():
            raise RuntimeError("streamSid handoff already resolved")
        self._future.set_result(stream_sid)

    def close(self):
        """Resolve with None if nothing was delivered."""
        if not self._future.done():
            self._future.set_result(None)

    async def wait(self) -> Optional[str]:
        """Block until a streamSid is delivered or the handoff is closed."""
        return await asyncio.shield(self._future)
