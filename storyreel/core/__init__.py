"""Caption timing core: IR, estimation, transcript mapping, retry, and sync.

WHY: The core package holds the only algorithmic part of the system —
deriving caption timing and keeping it in step with playback. It has
no knowledge of HTTP or FFmpeg. The provider segment shape is known
only through storyreel.api.models: transcript.py takes parsed
ProviderSegment objects, or raw segment dicts that it parses with
ProviderSegment.from_dict.

HOW: ir.py defines the data structures; estimator.py and transcript.py
produce segment lists; retry.py and fallback.py orchestrate provider
calls; playback.py consumes segment lists at runtime; stories.py wraps
story generation with its fallback.

RULES:
- IR dataclasses are the contract — change with care
- Nothing here performs network or file I/O directly
"""
