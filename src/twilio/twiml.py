"""
TwiML documents for the call-setup webhook.

Two directives are supported:
- say a greeting, then <Connect><Stream> to this server's /connect WebSocket
- <Play> a remote audio URL

Serialization and XML escaping are handled by the Twilio SDK.
"""
import logging

from twilio.twiml.voice_response import Connect, Stream, VoiceResponse

logger = logging.getLogger(__name__)

DEFAULT_GREETING = "Hi. I'm your Twilio host. Welcome!"
STREAM_PATH = "/connect"


def stream_url_for_host(host: str) -> str:
    return f"wss://{host}{STREAM_PATH}"


def build_say_and_connect_twiml(
    host: str,
    greeting: str = DEFAULT_GREETING,
    track: str = "inbound_track",
) -> str:
    """
    Generate TwiML that greets the caller and opens a Media Stream.

    Args:
        host: Public host Twilio should connect back to (e.g. example.com)
        greeting: Text spoken before the stream starts
        track: Stream track attribute (inbound_track, outbound_track, both_tracks)

    Returns:
        TwiML XML string with XML declaration
    """
    response = VoiceResponse()
    response.say(greeting)
    connect = Connect()
    connect.append(Stream(url=stream_url_for_host(host), track=track))
    response.append(connect)

    twiml_str = str(response)
    logger.info(f"Generated TwiML: {twiml_str}")
    return twiml_str


def build_play_twiml(url: str) -> str:
    """
    Generate TwiML that plays a remote audio file.

    Args:
        url: Playable audio URL, used verbatim

    Returns:
        TwiML XML string with XML declaration
    """
    response = VoiceResponse()
    response.play(url)

    twiml_str = str(response)
    logger.info(f"Generated TwiML: {twiml_str}")
    return twiml_str
