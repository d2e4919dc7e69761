import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response

from src.audio.diagnostics import FileDiagnosticsSink, NULL_SINK
from src.config import settings
from src.dependencies import get_diagnostics, get_tts_client, get_utterance_source
from src.tts.client import GoogleTTSClient, SynthesisError
from src.tts.config import TTSConfig
from src.tts.stream import PrerecordedUtterance, TTSStream, UtteranceSource
from src.twilio.stream import run_stream_session
from src.twilio.twiml import build_play_twiml, build_say_and_connect_twiml

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Session metrics for /metrics endpoint
class StreamMetrics:
    def __init__(self):
        self.total_sessions: int = 0
        self.active_sessions: int = 0
        self.audio_frames_sent: int = 0
        self.total_errors: int = 0

    def on_session_start(self):
        self.total_sessions += 1
        self.active_sessions += 1

    def on_session_end(self):
        self.active_sessions = max(0, self.active_sessions - 1)

    def on_audio_sent(self, stream_sid: str):
        self.audio_frames_sent += 1

    def on_error(self):
        self.total_errors += 1


metrics = StreamMetrics()


def build_tts_config() -> TTSConfig:
    return TTSConfig(
        engine=settings.tts_engine,
        language_code=settings.tts_language_code,
        voice_name=settings.tts_voice_name,
        ssml_gender=settings.tts_ssml_gender,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        f"Stream bridge starting: tts={settings.tts_engine}, "
        f"base_file_dir={settings.base_file_dir}, twiml_mode={settings.twiml_start_mode}"
    )

    # Bad or missing credentials abort startup
    tts_client = GoogleTTSClient.from_service_account_file(
        settings.google_application_credentials, config=build_tts_config()
    )

    diagnostics = FileDiagnosticsSink(settings.debug_dump_dir) if settings.debug_dump_dir else NULL_SINK

    if settings.tts_engine == "file":
        utterance_source = PrerecordedUtterance(settings.prerecorded_clip_path, diagnostics=diagnostics)
    else:
        utterance_source = TTSStream(tts_client, diagnostics=diagnostics)

    app.state.tts_client = tts_client
    app.state.utterance_source = utterance_source
    app.state.diagnostics = diagnostics

    yield

    await tts_client.aclose()
    logger.info("Stream bridge shut down")


app = FastAPI(title="Twilio Stream Bridge", lifespan=lifespan)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "Hello, World!"


@app.get("/health")
async def health_check():
    """Health check with session count."""
    return {
        "status": "healthy",
        "active_sessions": metrics.active_sessions,
        "tts_engine": settings.tts_engine,
        "twiml_start_mode": settings.twiml_start_mode,
    }


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus-compatible metrics."""
    lines = [
        "# HELP stream_bridge_sessions_total Total media stream sessions",
        "# TYPE stream_bridge_sessions_total counter",
        f"stream_bridge_sessions_total {metrics.total_sessions}",
        "# HELP stream_bridge_sessions_active Currently open media streams",
        "# TYPE stream_bridge_sessions_active gauge",
        f"stream_bridge_sessions_active {metrics.active_sessions}",
        "# HELP stream_bridge_audio_frames_sent_total Outbound media frames sent",
        "# TYPE stream_bridge_audio_frames_sent_total counter",
        f"stream_bridge_audio_frames_sent_total {metrics.audio_frames_sent}",
        "# HELP stream_bridge_errors_total Total errors",
        "# TYPE stream_bridge_errors_total counter",
        f"stream_bridge_errors_total {metrics.total_errors}",
    ]
    return PlainTextResponse("\n".join(lines) + "\n", media_type="text/plain")


@app.post("/twilio/twiml/start")
async def twiml_start(request: Request):
    """Serve TwiML for the call-setup webhook."""
    host = request.headers.get("host", settings.server_host)
    if settings.twiml_start_mode == "play":
        twiml = build_play_twiml(f"https://{host}/play")
    else:
        twiml = build_say_and_connect_twiml(host, greeting=settings.greeting_text)
    return Response(content=twiml, media_type="application/xml")


@app.get("/play")
async def play(tts_client: GoogleTTSClient = Depends(get_tts_client)):
    """Synthesize the utterance as MP3 for a <Play> directive."""
    try:
        audio = await tts_client.synthesize_mp3(settings.utterance_text)
    except SynthesisError as e:
        logger.error(f"Failed to synthesize /play audio: {e}")
        metrics.on_error()
        return PlainTextResponse("Speech synthesis failed", status_code=502)
    return Response(content=audio, media_type="audio/mpeg")


@app.websocket("/connect")
async def websocket_endpoint(
    websocket: WebSocket,
    utterance_source: UtteranceSource = Depends(get_utterance_source),
    diagnostics=Depends(get_diagnostics),
):
    """WebSocket endpoint for Twilio Media Streams."""
    await websocket.accept()
    metrics.on_session_start()

    try:
        session = await run_stream_session(
            websocket,
            utterance_source,
            settings.utterance_text,
            start_delay=settings.stream_start_delay_seconds,
            mark_name=settings.playback_mark_name,
            diagnostics=diagnostics,
            on_audio_sent=metrics.on_audio_sent,
            on_error=metrics.on_error,
        )
        logger.info(f"Stream session ended: {session.stream_sid} ({session.phase.value})")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
        metrics.on_error()
    finally:
        metrics.on_session_end()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower()
    )
