"""Command-line interface for storyreel.

WHY: Caption timing and video export are useful outside the browser
editor too — for batch jobs, for checking an SRT before export, and
for running the API server itself. The CLI wires the same core and
media modules the HTTP API uses behind three subcommands.

HOW: Uses argparse subcommands:
  captions — estimate caption timings for a text file and render them
  export   — burn an SRT into the background video with a WAV narration
  serve    — run the FastAPI app under uvicorn
Async work runs via asyncio.run(). Status messages go to stderr; the
captions document goes to stdout unless -o is given.

RULES:
- Status output goes to stderr (not stdout)
- Exit code 1 on any StoryreelError or missing input file, 130 on Ctrl-C
- export always releases its workspace, even on failure
- Python 3.9 compatible — no match/case, no X | Y unions at runtime
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import dataclasses
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from storyreel.config import ASPECT_RATIO_DIMENSIONS, DEFAULT_ASPECT_RATIO, Settings
from storyreel.core import estimator
from storyreel.core.ir import CaptionPosition, CaptionSettings, sanitize_segments
from storyreel.errors import StoryreelError
from storyreel.formatters import FORMATTERS
from storyreel.formatters.srt_captions import parse_srt
from storyreel.media.encoder import FFmpegEncoder
from storyreel.media.pipeline import ExportRequest, assemble
from storyreel.media.workspaces import WorkspaceStore


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# captions
# ---------------------------------------------------------------------------


def _run_captions(args: argparse.Namespace) -> None:
    text_path = Path(args.text_file)
    if not text_path.is_file():
        _fail("File not found: {}".format(text_path))

    text = text_path.read_text(encoding="utf-8")
    if args.duration:
        segments = estimator.estimate_by_proportion(text, args.duration)
        _status("Proportional timing over {:.2f}s".format(args.duration))
    else:
        segments = estimator.estimate(text)
        _status("Per-word estimated timing")
    _status("  {} caption segments".format(len(segments)))

    formatter = FORMATTERS[args.format]()
    outputs = formatter.format(segments)
    content = outputs[0].content if outputs else ""

    if args.output:
        Path(args.output).write_text(content, encoding="utf-8")
        _status("Saved: {}".format(args.output))
    else:
        sys.stdout.write(content)


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


def _caption_settings(args: argparse.Namespace) -> CaptionSettings:
    position = None
    if args.position_y is not None:
        position = CaptionPosition(x=50.0, y=args.position_y)
    return CaptionSettings(
        font_color=args.font_color,
        background_color=args.background_color,
        opacity=args.opacity,
        font_size=args.font_size,
        position=position,
    )


async def _run_export(args: argparse.Namespace) -> None:
    """Assemble one video from files on disk and copy it to --output.

    RULES:
    - Captions come from an SRT file; malformed blocks are skipped
    - The workspace store is private to this run and emptied at the end
    """
    audio_path = Path(args.audio)
    if not audio_path.is_file():
        _fail("File not found: {}".format(audio_path))

    captions = []
    if args.captions:
        srt_path = Path(args.captions)
        if not srt_path.is_file():
            _fail("File not found: {}".format(srt_path))
        captions = sanitize_segments(
            {"text": c["text"], "startTime": c["start"], "endTime": c["end"]}
            for c in parse_srt(srt_path.read_text(encoding="utf-8"))
        )
    _status("Loaded {} caption segments".format(len(captions)))

    settings = Settings.from_env()
    if args.background_video:
        settings = dataclasses.replace(
            settings, background_video_path=Path(args.background_video)
        )

    request = ExportRequest(
        audio_data=base64.b64encode(audio_path.read_bytes()).decode("ascii"),
        background_src=args.background_image,
        captions=captions,
        caption_settings=_caption_settings(args),
        aspect_ratio=args.aspect_ratio,
    )
    store = WorkspaceStore(ttl_seconds=settings.workspace_ttl_seconds)
    try:
        _status("Rendering video with FFmpeg...")
        result = await assemble(
            request,
            settings=settings,
            workspaces=store,
            encoder=FFmpegEncoder(settings.ffmpeg_binary),
        )
        shutil.copyfile(result.output_path, args.output)
    finally:
        store.release_all()
    _status("Saved: {}".format(args.output))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - Subcommands: captions, export, serve (one is required)
    - --format choices are the FORMATTERS keys
    - --aspect-ratio choices are the ASPECT_RATIO_DIMENSIONS keys
    """
    parser = argparse.ArgumentParser(
        prog="storyreel",
        description="Caption timing and captioned story video export.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log at DEBUG level (includes FFmpeg output).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    captions = sub.add_parser("captions", help="Estimate caption timings for a text file.")
    captions.add_argument("text_file", help="UTF-8 text file with the narration.")
    captions.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Known narration length in seconds (uses proportional timing).",
    )
    captions.add_argument(
        "--format",
        choices=sorted(FORMATTERS.keys()),
        default="srt",
        help="Output document format (default: %(default)s).",
    )
    captions.add_argument("-o", "--output", default=None, help="Output file (default: stdout).")

    export = sub.add_parser("export", help="Render a captioned video.")
    export.add_argument("--audio", required=True, help="Narration WAV file.")
    export.add_argument("--captions", default=None, help="SRT file with captions (optional).")
    export.add_argument(
        "--aspect-ratio",
        choices=sorted(ASPECT_RATIO_DIMENSIONS.keys()),
        default=DEFAULT_ASPECT_RATIO,
        help="Output frame proportion (default: %(default)s).",
    )
    export.add_argument("--background-video", default=None,
                        help="Background video (default: BACKGROUND_VIDEO_PATH).")
    export.add_argument("--background-image", default=None,
                        help="Optional background image URL or public path.")
    export.add_argument("--font-size", type=float, default=None, help="Caption font size.")
    export.add_argument("--font-color", default=None, help="Caption font color.")
    export.add_argument("--background-color", default=None, help="Caption box color (hex).")
    export.add_argument("--opacity", type=float, default=None, help="Caption box opacity 0-1.")
    export.add_argument("--position-y", type=float, default=None,
                        help="Caption vertical position, percent from top.")
    export.add_argument("-o", "--output", required=True, help="Output MP4 path.")

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``storyreel`` console script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        from storyreel.server.app import run_api
        run_api(host=args.host, port=args.port)
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else Settings.from_env().log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        if args.command == "captions":
            _run_captions(args)
        else:
            asyncio.run(_run_export(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except StoryreelError as e:
        print("Error: {}".format(e.message), file=sys.stderr)
        sys.exit(1)
