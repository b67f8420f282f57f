"""Story text generation with a canned per-theme fallback.

WHY: The story is the input to everything else. If the text-generation
provider is down or misconfigured the user should still get a story to
narrate, so failures are replaced by a canned story for the theme
instead of surfacing as an error.

HOW: generate_story() asks the provider for a story sized by the length
preset. Any failure (including a missing provider or an empty reply)
returns fallback_story(theme, length).

RULES:
- Lengths: "Short (15s)", "Medium (30s)", "Long (60s)"
- Token budget: Short 100, Medium 200, Long 400, anything else 200
- Unknown themes fall back to the "funny" story
- Short keeps only the first sentence; Long doubles stories under 300 chars
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

STORY_LENGTHS = ("Short (15s)", "Medium (30s)", "Long (60s)")

_MAX_TOKENS = {
    "short (15s)": 100,
    "medium (30s)": 200,
    "long (60s)": 400,
}
_DEFAULT_MAX_TOKENS = 200

STORY_SYSTEM_PROMPT = (
    "You are a creative storyteller. Generate an engaging story based on the "
    "given theme and length. The story should be concise, engaging, and "
    "suitable for a social media video."
)

FALLBACK_STORIES: dict[str, str] = {
    "funny": (
        "I couldn't believe what happened at the grocery store today. There I was, "
        "minding my own business in the produce section, when suddenly a banana peel "
        "appeared out of nowhere. Classic setup, right? But instead of slipping, I "
        "watched as the store manager, a serious guy who never smiles, rounded the "
        "corner and went down like a sack of potatoes. The best part? He was carrying "
        "a cake for an employee celebration. Let's just say everyone got an equal "
        "share of frosting that day, including the ceiling."
    ),
    "dramatic": (
        "The letter arrived on Tuesday. Plain envelope, no return address. My hands "
        "trembled as I opened it, knowing what it might contain. Three years I'd been "
        "running, changing names, cities, jobs. The single sheet of paper inside had "
        "just five words: 'I know where you are.' I packed my bags that night, left my "
        "apartment keys with the neighbor. Some secrets are worth running from forever."
    ),
    "inspirational": (
        "Everyone said the mountain couldn't be climbed in winter. Too steep, too icy, "
        "too dangerous. But Sarah had never been good at listening to 'impossible.' "
        "After losing her leg in the accident, doctors said she'd never walk unaided "
        "again. Now, as she planted her flag at the summit, the wind whipping tears "
        "from her eyes, she took a photo to send to those same doctors. Sometimes the "
        "only limits that exist are the ones we choose to believe in."
    ),
    "scary": (
        "The knocking started at exactly 3:17 AM. Three sharp raps on my bedroom "
        "window, the window fourteen stories up, with no balcony. I froze under my "
        "covers, telling myself it was the wind, a bird, anything logical. Then came "
        "the whisper, a child's voice: 'Please let me in. It's cold out here.' I "
        "haven't opened my curtains in three days. The knocking continues every "
        "night, but now it's at my bedroom door."
    ),
    "relationship": (
        "We met in the comments section of a recipe blog. I said the cookies needed "
        "more vanilla; they argued for almond extract instead. Somehow that trivial "
        "disagreement turned into emails, then calls, then meeting halfway between "
        "our cities at a café where we baked both versions together. Sometimes love "
        "isn't about grand gestures or perfect compatibility. It's about finding "
        "someone who makes even the smallest disagreements feel like adventures "
        "worth having."
    ),
}


class StoryProvider(Protocol):
    async def generate_story(self, theme: str, length: str) -> str: ...


def max_tokens_for(length: str) -> int:
    return _MAX_TOKENS.get(length.lower(), _DEFAULT_MAX_TOKENS)


def build_story_prompt(theme: str, length: str) -> str:
    return (
        "Generate a {} story that would take about {} to read aloud. "
        "Make it engaging for social media.".format(theme.lower(), length.lower())
    )


def fallback_story(theme: str, length: str) -> str:
    """Return the canned story for ``theme`` adjusted to ``length``."""
    logger.info("Using fallback story generator for %s %s", theme, length)
    story = FALLBACK_STORIES.get(theme.lower(), FALLBACK_STORIES["funny"])

    if "Short" in length:
        return story.split(".")[0] + "."
    if "Long" in length and len(story) < 300:
        return story + " " + story
    return story


async def generate_story(
    theme: str,
    length: str,
    provider: StoryProvider | None,
) -> str:
    """Generate a story, substituting the canned fallback on any failure."""
    if provider is None:
        return fallback_story(theme, length)
    try:
        story = await provider.generate_story(theme, length)
    except Exception as exc:
        logger.error("Story provider failed, using fallback: %s", exc)
        return fallback_story(theme, length)

    if not story or not story.strip():
        logger.warning("Story provider returned no text, using fallback")
        return fallback_story(theme, length)

    logger.info("Story generated successfully, length: %d", len(story))
    return story
