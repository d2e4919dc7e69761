"""
Media stream session coordinator.

Each accepted WebSocket runs two tasks:
- listener: classifies inbound frames, hands over the streamSid on 'start'
- speaker: waits for the streamSid, waits the start delay, produces the
  utterance and sends it as one media frame

Nothing is sent before 'start' has been seen. When the socket closes the
listener ends, the handoff is closed and any speaker still running is
cancelled.
"""
import asyncio
import logging
from typing import Callable, Optional

from fastapi import WebSocket

from src.audio.conversion import AudioDecodeError
from src.audio.diagnostics import DiagnosticsSink, NULL_SINK
from src.state.session import StreamSession, StreamSidHandoff
from src.tts.client import SynthesisError
from src.tts.stream import UtteranceSource
from src.twilio.handlers import listen_for_stream
from src.twilio.outbound import build_mark_message, build_media_message

logger = logging.getLogger(__name__)

# 1011 = Internal Error
CLOSE_INTERNAL_ERROR = 1011


async def speak_to_stream(
    websocket: WebSocket,
    handoff: StreamSidHandoff,
    utterance_source: UtteranceSource,
    text: str,
    start_delay: float = 1.0,
    mark_name: Optional[str] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
    on_audio_sent: Optional[Callable[[str], None]] = None,
) -> bool:
    """
    Send one utterance once the stream has started.

    Args:
        websocket: Twilio WebSocket to write to
        handoff: Delivers the streamSid (or None if the peer left first)
        utterance_source: Object with `async generate(text) -> bytes`
        text: Utterance text
        start_delay: Seconds to wait after 'start' so Twilio finishes its own stream setup
        mark_name: If set, a mark event follows the media frame
        diagnostics: Sink for the serialized media message
        on_audio_sent: Called with the streamSid after the media frame is sent

    Returns:
        True if audio was sent

    Raises:
        SynthesisError, AudioDecodeError: If the utterance can't be produced
    """
    stream_sid = await handoff.wait()
    if stream_sid is None:
        logger.info("Stream closed before 'start'; nothing to send")
        return False

    logger.info(f"[{stream_sid}] Speaker got streamSid, sending in {start_delay}s")
    if start_delay > 0:
        await asyncio.sleep(start_delay)

    raw_samples = await utterance_source.generate(text)

    message = build_media_message(raw_samples, stream_sid)
    (diagnostics or NULL_SINK).record("media_message", message.encode("utf-8"))

    await websocket.send_text(message)
    logger.info(f"[{stream_sid}] Sent media frame: {len(raw_samples)} bytes of audio")
    if on_audio_sent:
        on_audio_sent(stream_sid)

    if mark_name:
        await websocket.send_text(build_mark_message(mark_name, stream_sid))
        logger.info(f"[{stream_sid}] Sent mark '{mark_name}'")

    return True


async def _close_quietly(websocket: WebSocket, code: int):
    try:
        await websocket.close(code=code)
    except Exception as e:
        logger.debug(f"WebSocket already closed: {e}")


async def _run_speaker(
    websocket: WebSocket,
    session: StreamSession,
    on_error: Optional[Callable[[], None]] = None,
    **kwargs,
) -> bool:
    """Speaker task wrapper: per-session failures are logged and reported here, never raised."""
    try:
        return await speak_to_stream(websocket, **kwargs)
    except (SynthesisError, AudioDecodeError) as e:
        logger.error(f"[{session.stream_sid}] Utterance failed, no audio sent: {e}")
        if on_error:
            on_error()
        await _close_quietly(websocket, CLOSE_INTERNAL_ERROR)
    except asyncio.CancelledError:
        logger.info(f"[{session.stream_sid}] Speaker cancelled")
        raise
    except Exception as e:
        logger.error(f"[{session.stream_sid}] Error sending audio: {e}", exc_info=True)
        if on_error:
            on_error()
    return False


async def run_stream_session(
    websocket: WebSocket,
    utterance_source: UtteranceSource,
    text: str,
    start_delay: float = 1.0,
    mark_name: Optional[str] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
    on_audio_sent: Optional[Callable[[str], None]] = None,
    on_error: Optional[Callable[[], None]] = None,
    session: Optional[StreamSession] = None,
) -> StreamSession:
    """
    Drive one Twilio media stream until its WebSocket closes.

    Args:
        websocket: Accepted Twilio WebSocket
        utterance_source: Produces raw samples (TTSStream or PrerecordedUtterance)
        text: Utterance to speak
        start_delay: Delay between 'start' and synthesis
        mark_name: Optional mark sent after the audio
        diagnostics: Optional diagnostics sink
        on_audio_sent: Callback after the media frame is written
        on_error: Callback when the utterance can't be produced or sent
        session: Session state to fill in (created if omitted)

    Returns:
        The closed session
    """
    session = session or StreamSession()
    handoff = StreamSidHandoff()

    listener = asyncio.create_task(listen_for_stream(websocket, handoff, session))
    speaker = asyncio.create_task(
        _run_speaker(
            websocket,
            session,
            on_error=on_error,
            handoff=handoff,
            utterance_source=utterance_source,
            text=text,
            start_delay=start_delay,
            mark_name=mark_name,
            diagnostics=diagnostics,
            on_audio_sent=on_audio_sent,
        )
    )

    try:
        await listener
    finally:
        # Transport is gone: a speaker still waiting or synthesizing has nowhere to send
        if not speaker.done():
            speaker.cancel()
        await asyncio.gather(speaker, return_exceptions=True)
        if not listener.done():
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)

    return session
