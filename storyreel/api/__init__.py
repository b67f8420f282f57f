"""Groq API client package — async HTTP interface to the AI provider.

WHY: Story text, narration, and timed transcripts all come from one
OpenAI-compatible provider. This package encapsulates that
communication behind an async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. Response data is
parsed into typed dataclasses defined in models.py.

RULES:
- All provider HTTP calls go through GroqClient (no direct httpx usage elsewhere,
  except fetching remote background images)
- Authentication is via Bearer token from Settings
"""

from storyreel.api.client import GroqClient
from storyreel.api.models import ProviderSegment, TranscriptionResponse

__all__ = ["GroqClient", "ProviderSegment", "TranscriptionResponse"]
