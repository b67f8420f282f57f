"""Storyreel — narrated vertical video with burned-in captions.

WHY: A short text story becomes a narrated video only after three things
line up: caption timing that matches the narration, captions that track
the playback clock, and an encoder invocation that burns styled
subtitles onto a background video. This package owns that timing and
assembly logic; the AI providers and FFmpeg are external collaborators.

HOW: Three layers — captions (core: estimate, map, retry/fallback,
playback sync), documents (formatters: SRT and plain text), and media
(overlay filter compilation, encoder contract, assembly pipeline). The
FastAPI server and the CLI sit on top.

RULES:
- CaptionSegment lists are the stable contract between every layer
- Nothing crashes the process; each request's failure is contained
- Temp workspaces are always released
"""

__version__ = "0.1.0"
