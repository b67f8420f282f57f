"""FFmpeg invocation contract: availability, export arguments, frame extraction.

WHY: The encoder is an external process. Only the contract matters
here — which inputs and options it receives, and what its exit code
means. Keeping that contract in one place lets the pipeline be tested
with a fake encoder and keeps the argument list reviewable.

HOW: FFmpegEncoder spawns the binary with asyncio.create_subprocess_exec
(no shell). stdout/stderr are drained concurrently and logged at DEBUG
as advisory output; the caller resumes only after the exit status is
known. Cancelling the awaiting task kills the child process.

RULES:
- Exit code 0 = success; anything else = failure (message unstructured)
- A spawn failure (binary missing, permission) raises EncoderError
- stdin is closed and ``-y`` is passed so FFmpeg never prompts
- Export: H.264 video, AAC audio at 192k, -shortest, yuv420p
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from storyreel.errors import EncoderError

logger = logging.getLogger(__name__)

VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"
PIXEL_FORMAT = "yuv420p"

DRAIN_CHUNK_SIZE = 4096
_LINE_BREAK_RE = re.compile(rb"\r\n|\r|\n")


def build_export_args(
    background_video: Path,
    audio: Path,
    overlay_filter: str,
    output: Path,
) -> list[str]:
    """Arguments (without the binary) for the single export invocation."""
    return [
        "-y",
        "-i", str(background_video),
        "-i", str(audio),
        "-c:v", VIDEO_CODEC,
        "-c:a", AUDIO_CODEC,
        "-b:a", AUDIO_BITRATE,
        "-shortest",
        "-vf", overlay_filter,
        "-pix_fmt", PIXEL_FORMAT,
        str(output),
    ]


def build_frame_args(video: Path, frame: Path) -> list[str]:
    """Arguments to grab the first frame of ``video`` as a JPEG."""
    return [
        "-y",
        "-i", str(video),
        "-vframes", "1",
        "-q:v", "2",
        str(frame),
    ]


async def _drain(stream: asyncio.StreamReader | None, label: str) -> None:
    """Log a child stream at DEBUG until EOF, reading fixed-size chunks.

    FFmpeg ends progress updates with a bare carriage return, so a
    readline() loop would overflow the StreamReader limit on long encodes.
    """
    if stream is None:
        return
    pending = b""
    while True:
        chunk = await stream.read(DRAIN_CHUNK_SIZE)
        if not chunk:
            break
        *lines, pending = _LINE_BREAK_RE.split(pending + chunk)
        for line in lines:
            if line:
                logger.debug("FFmpeg %s: %s", label, line.decode(errors="replace"))
        if len(pending) > DRAIN_CHUNK_SIZE:
            logger.debug("FFmpeg %s: %s", label, pending.decode(errors="replace"))
            pending = b""
    if pending:
        logger.debug("FFmpeg %s: %s", label, pending.decode(errors="replace"))


class FFmpegEncoder:
    """Thin async wrapper around the FFmpeg command-line tool."""

    def __init__(self, binary: str = "ffmpeg") -> None:
        self.binary = binary

    async def available(self) -> bool:
        """Run ``ffmpeg -version``; False when missing or failing."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, "-version",
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError:
            logger.error("FFmpeg is not installed or not in PATH")
            return False
        return await proc.wait() == 0

    async def run(self, args: list[str]) -> int:
        """Run the binary with ``args`` and return its exit code.

        RULES:
        - Waits for process exit before returning
        - Raises EncoderError when the process cannot be spawned
        - Kills and reaps the process if the wait is interrupted for any
          reason, cancellation included
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise EncoderError("Error generating video: {}".format(exc)) from exc

        try:
            await asyncio.gather(
                _drain(proc.stdout, "stdout"),
                _drain(proc.stderr, "stderr"),
            )
            return await proc.wait()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

    async def encode(
        self,
        background_video: Path,
        audio: Path,
        overlay_filter: str,
        output: Path,
    ) -> int:
        return await self.run(build_export_args(background_video, audio, overlay_filter, output))

    async def extract_first_frame(self, video: Path, frame: Path) -> int:
        return await self.run(build_frame_args(video, frame))
