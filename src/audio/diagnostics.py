"""
Optional diagnostics for the outbound audio pipeline.

Each pipeline stage hands its intermediate payload to a sink. The default
sink discards everything; FileDiagnosticsSink writes one file per stage so
the audio can be inspected with ffprobe/soxi or imported into Audacity as
raw mu-law 8kHz.
"""
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

# stage name → file written by FileDiagnosticsSink
STAGE_FILENAMES = {
    "synthesis_payload": "synthesis_payload.txt",
    "decoded_container": "decoded_container.wav",
    "headerless": "headerless.dat",
    "media_message": "media_message.json",
}


class DiagnosticsSink:
    """Receives intermediate payloads. Does nothing by default."""

    def record(self, stage: str, data: bytes):
        pass


class FileDiagnosticsSink(DiagnosticsSink):
    """Writes each stage's payload into a directory, overwriting per call."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Diagnostics dumps enabled: {self.directory}")

    def record(self, stage: str, data: bytes):
        filename = STAGE_FILENAMES.get(stage, f"{stage}.bin")
        path = self.directory / filename
        try:
            path.write_bytes(data)
        except OSError as e:
            # Dumps are best-effort; the call continues without them
            logger.warning(f"Failed to write diagnostics stage {stage} to {path}: {e}")


NULL_SINK = DiagnosticsSink()
