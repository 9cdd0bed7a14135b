"""
Prompt templates for the generation stage.

The reducer renders the prompt so the generation adapter stays a dumb pipe.
"""

from __future__ import annotations

PROMPT_VERSION: str = "v1"

EMOTION_HELPER_PROMPT_V1: str = """You are helping a young child (Age 2-8) with ASD understand emotions.
The child says: {transcript}

Please respond with a simple explanation that:
- Uses concrete examples
- Avoids idioms or abstract concepts
- Uses short, clear sentences + simple words
- Focuses on visual or physical signs of emotions
- Provides practical ways to respond to the emotion

Keep the response under 3 sentences."""


def render_prompt(transcript: str) -> str:
    """Wrap the child's transcribed words in the helper instructions."""
    return EMOTION_HELPER_PROMPT_V1.format(transcript=transcript.strip())
