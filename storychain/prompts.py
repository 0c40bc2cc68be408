"""Handlebars prompt rendering for AI story openings."""

from collections.abc import Callable
from typing import Any

import pybars

from storychain.models import StoryGenerationRequest

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


SYSTEM_PROMPT = """\
You are a professional story-writing assistant who specialises in gripping \
story openings built from parameters supplied by the user.

Your task:
1. Write a story opening from the given parameters (time, location, \
characters, action, mood, genre).
2. Make the opening vivid enough that readers want to keep going.
3. Leave plenty of room for other writers to continue the story.
4. Write fluent, natural prose.
5. Reflect the conventions of the requested genre.

Requirements:
- Establish a clear scene.
- Give the characters distinct, memorable traits.
- Introduce suspense or conflict that drives the plot forward.
- Match the language to the genre.
- Give the next writer an obvious direction to take the story.

Keep strictly to the requested length."""

USER_PROMPT_TEMPLATE = """\
Write the opening of a {{{genre}}} story, {{{length}}} long.

Story parameters:
{{#if time}}- Time: {{{time}}}
{{/if}}{{#if location}}- Location: {{{location}}}
{{/if}}{{#if characters}}- Main characters: {{{characters}}}
{{/if}}{{#if action}}- Event: {{{action}}}
{{/if}}{{#if mood}}- Mood: {{{mood}}}
{{/if}}{{#if prompt}}- Notes from the author: {{{prompt}}}
{{/if}}{{#if guidance}}
{{{guidance}}}
{{/if}}
Write the opening from these parameters. Make it vivid and leave room for \
the story to be continued. Output only the story text, with no commentary."""

GENRE_DESCRIPTIONS = {
    "fantasy": "fantasy",
    "sci-fi": "science fiction",
    "romance": "romance",
    "mystery": "mystery",
    "adventure": "adventure",
    "horror": "horror",
    "comedy": "comedy",
    "drama": "drama",
}

LENGTH_REQUIREMENTS = {
    "short": "100-150 words",
    "medium": "200-300 words",
    "long": "400-500 words",
}

STYLE_GUIDANCE = {
    "fantasy": "Build a world of magic: hidden powers, creatures of legend or an ancient prophecy.",
    "sci-fi": "Foreground technology and a sense of the future: advanced machines, space travel or time travel.",
    "romance": "Focus on emotional atmosphere and the subtle bond between the characters.",
    "mystery": "Build suspense around a puzzle or an unexplained event that makes the reader curious.",
    "adventure": "Stress excitement and risk: an expedition, a challenge or a dangerous situation.",
    "horror": "Create a tense, frightening atmosphere, but avoid excessive gore or violence.",
    "comedy": "Find the humour in the situation, the dialogue or the characters' quirks.",
    "drama": "Draw out the characters' feelings and inner conflicts and the deeper human themes.",
}


def _compiled(template_str: str) -> Callable:
    compiled = _cache.get(template_str)
    if compiled is None:
        try:
            compiled = _compiler.compile(template_str)
        except Exception as e:
            raise PromptError(f"Prompt template does not compile: {e}") from e
        _cache[template_str] = compiled
    return compiled


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Render a Handlebars prompt; compiled templates are kept per source string."""
    compiled = _compiled(template_str)
    try:
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Prompt template failed to render: {e}") from e


def build_context(request: StoryGenerationRequest) -> dict[str, Any]:
    """Assemble template variables from a generation request."""
    params = request.parameters
    characters = [c.strip() for c in params.characters or [] if c.strip()]
    return {
        "genre": GENRE_DESCRIPTIONS.get(request.style, "fantasy"),
        "length": LENGTH_REQUIREMENTS.get(request.length, LENGTH_REQUIREMENTS["medium"]),
        "time": params.time or "",
        "location": params.location or "",
        "characters": ", ".join(characters),
        "action": params.action or "",
        "mood": params.mood or "",
        "prompt": (request.prompt or "").strip(),
        "guidance": STYLE_GUIDANCE.get(request.style, ""),
    }


def build_user_prompt(request: StoryGenerationRequest) -> str:
    return render_prompt(USER_PROMPT_TEMPLATE, build_context(request))
