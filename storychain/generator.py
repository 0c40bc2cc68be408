"""Story parameter and opening generation.

Two ways to produce an opening:

    generate_beginning          — fills a fixed sentence template with the
                                  caller's parameters, sampling anything
                                  missing from the genre tables.
    generate_beginning_with_ai  — asks a chat-completion model for the text
                                  and falls back to generate_beginning on any
                                  failure. It never raises because the AI is
                                  missing or broken.

Every function accepts an optional random.Random so tests can pin the draws;
by default the module-level RNG is used.
"""

from __future__ import annotations

import logging
import random

from storychain.config import AIConfig
from storychain.llm import LLM, ChatCompletionLLM, LLMError
from storychain.models import StoryGenerationRequest, StoryParameters
from storychain.prompts import SYSTEM_PROMPT, PromptError, build_user_prompt

logger = logging.getLogger(__name__)

DEFAULT_GENRE = "fantasy"

GENRE_TABLES: dict[str, dict[str, list[str]]] = {
    "fantasy": {
        "times": ["ancient times", "the Middle Ages", "the age of magic",
                  "a forgotten era", "the age of legends"],
        "locations": ["an enchanted forest", "an ancient castle", "a mysterious cave",
                      "a floating island", "a dragon's lair", "the elven kingdom",
                      "a dwarven mine"],
        "characters": ["a brave knight", "a mysterious mage", "an elven archer",
                       "a dwarf warrior", "a dragon guardian", "a young apprentice",
                       "a forest druid"],
        "actions": ["search for a legendary treasure", "rescue a captive princess",
                    "stop an evil sorcerer", "explore ancient ruins",
                    "tame a great dragon", "break a magic curse"],
    },
    "sci-fi": {
        "times": ["the year 2050", "the year 2100", "the distant future",
                  "the interstellar age", "the age of robots"],
        "locations": ["a space station", "an alien planet", "an underground city",
                      "a flying car", "a virtual world", "a Mars base", "a time tunnel"],
        "characters": ["a space explorer", "a robot companion", "an alien being",
                       "a scientist", "a time traveller", "a cyberpunk hacker",
                       "an AI assistant"],
        "actions": ["explore a new planet", "stop a robot uprising",
                    "search for a lost civilisation", "repair a rift in time",
                    "make contact with aliens", "save the Earth"],
    },
    "romance": {
        "times": ["a spring afternoon", "a summer dusk", "a rainy autumn night",
                  "a snowy winter evening", "cherry-blossom season"],
        "locations": ["a cafe", "a library", "the seaside", "a park", "a small town",
                      "a university campus", "an art gallery"],
        "characters": ["a gentle writer", "a cheerful student", "a mysterious artist",
                       "a charming bookshop owner", "a kind doctor",
                       "a gifted musician"],
        "actions": ["meet by chance", "reunite with an old friend",
                    "watch the stars together", "finish a project together",
                    "help each other out", "share a secret"],
    },
    "mystery": {
        "times": ["the dead of night", "a stormy night", "a fog-bound morning",
                  "a moonless night", "twilight"],
        "locations": ["an old manor", "an abandoned factory", "a secretive small town",
                      "a hidden room in a library", "a basement", "a lonely island",
                      "a vintage train"],
        "characters": ["a private detective", "a mysterious stranger", "a butler",
                       "a missing person", "a witness", "a suspect", "a police officer"],
        "actions": ["investigate a disappearance", "search for clues",
                    "solve a riddle", "track down a suspect", "uncover a secret",
                    "reveal the truth"],
    },
    "adventure": {
        "times": ["daybreak", "the blazing noon", "early evening", "midnight",
                  "the middle of a storm"],
        "locations": ["a tropical rainforest", "a desert oasis", "a snowy summit",
                      "the deep sea", "a volcano's rim", "ancient ruins",
                      "a deserted island"],
        "characters": ["an adventurer", "a guide", "an archaeologist",
                       "an expedition member", "a local villager", "a wildlife expert",
                       "a treasure hunter"],
        "actions": ["find a lost treasure", "cross dangerous ground",
                    "rescue a teammate", "escape a trap", "conquer the peak",
                    "explore the unknown"],
    },
    "horror": {
        "times": ["the dead of night", "the stroke of midnight", "the hour before dawn",
                  "a stormy night", "a full-moon night"],
        "locations": ["an abandoned hospital", "an old graveyard", "a gloomy forest",
                      "a deserted town", "a basement", "a decrepit house",
                      "a fog-filled valley"],
        "characters": ["a fearless investigator", "a strange visitor", "a local resident",
                       "a missing person", "a night watchman", "a researcher",
                       "a survivor"],
        "actions": ["investigate something supernatural", "find the missing",
                    "escape the danger", "lift a curse", "fight an evil force",
                    "seek the truth"],
    },
    "comedy": {
        "times": ["a sunny morning", "a hectic lunch hour", "a weekend afternoon",
                  "a festival day", "an ordinary day"],
        "locations": ["a busy restaurant", "an office", "a school", "a park",
                      "a shopping mall", "a family reunion", "a community centre"],
        "characters": ["a hilarious friend", "an eccentric neighbour",
                       "a witty teacher", "a lovable pet", "a clumsy coworker",
                       "a quirky relative"],
        "actions": ["pull off an unexpected joke", "enter a silly contest",
                    "solve an absurd problem", "plan a prank",
                    "untangle a string of misunderstandings",
                    "smooth over an awkward moment"],
    },
    "drama": {
        "times": ["a turning point in life", "a day that mattered", "many years later",
                  "a moment of truth", "a crossroads of fate"],
        "locations": ["a family living room", "a hospital", "a courtroom", "a school",
                      "a workplace", "the old family home", "a city street"],
        "characters": ["a resilient mother", "a lost young man", "a wise elder",
                       "a hardworking father", "a rebellious child", "a loyal friend"],
        "actions": ["face a life-changing choice", "resolve a family conflict",
                    "chase a dream", "overcome hardship", "find themselves",
                    "rebuild a relationship"],
    },
}

MOODS: dict[str, list[str]] = {
    "fantasy": ["mysterious", "magical", "epic", "legendary", "enchanted"],
    "sci-fi": ["futuristic", "high-tech", "mysterious", "thrilling", "visionary"],
    "romance": ["cosy", "romantic", "sweet", "touching", "warm"],
    "mystery": ["suspenseful", "tense", "mysterious", "chilling", "gripping"],
    "adventure": ["exciting", "daring", "perilous", "exhilarating", "challenging"],
    "horror": ["terrifying", "eerie", "uncanny", "unsettling", "spine-chilling"],
    "comedy": ["funny", "light-hearted", "humorous", "joyful", "playful"],
    "drama": ["moving", "profound", "raw", "heartfelt", "thought-provoking"],
}

LOCATION_DESCRIPTIONS = [
    "was steeped in a {mood} atmosphere",
    "gave off a {mood} air",
    "felt thoroughly {mood}",
    "left a {mood} impression on anyone who entered",
    "carried a faintly {mood} charm",
]

CHARACTER_BACKGROUNDS = [
    "{character} had years of experience and an unshakable will",
    "{character} was young, but full of courage and wit",
    "{character} carried a mysterious past and an unknown purpose",
    "{character} possessed rare abilities and a unique way of seeing things",
    "{character} held lofty ideals and a steadfast belief",
]


_default_rng = random.Random()


def _rng(rng: random.Random | None) -> random.Random:
    return rng if rng is not None else _default_rng


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def genre_table(genre: str | None) -> dict[str, list[str]]:
    """Lookup table for a genre, falling back to the default genre."""
    return GENRE_TABLES.get(genre or DEFAULT_GENRE, GENRE_TABLES[DEFAULT_GENRE])


def random_mood(genre: str | None, rng: random.Random | None = None) -> str:
    return _rng(rng).choice(MOODS.get(genre or DEFAULT_GENRE, MOODS[DEFAULT_GENRE]))


def generate_parameters(
    genre: str = DEFAULT_GENRE, rng: random.Random | None = None
) -> StoryParameters:
    """Sample one value per field from the genre table."""
    r = _rng(rng)
    table = genre_table(genre)
    return StoryParameters(
        time=r.choice(table["times"]),
        location=r.choice(table["locations"]),
        characters=[r.choice(table["characters"])],
        action=r.choice(table["actions"]),
        mood=random_mood(genre, r),
        genre=genre,
    )


def validate_parameters(parameters: StoryParameters) -> bool:
    """True iff at least one of time, location, action or a character is set."""
    has_character = any(c.strip() for c in parameters.characters or [])
    return bool(parameters.time or parameters.location or parameters.action or has_character)


def generate_beginning(
    request: StoryGenerationRequest, rng: random.Random | None = None
) -> str:
    """Template-based opening. Missing fields are sampled from the genre table."""
    r = _rng(rng)
    params = request.parameters
    table = genre_table(request.style)

    characters = [c for c in params.characters or [] if c.strip()]
    time = params.time or r.choice(table["times"])
    location = params.location or r.choice(table["locations"])
    character = characters[0] if characters else r.choice(table["characters"])
    action = params.action or r.choice(table["actions"])
    mood = params.mood or random_mood(request.style, r)

    opening = f"It was {time} when {character} arrived at {location}."
    if request.length == "short":
        return f"{_capitalize(opening)} They decided to {action}."

    place = r.choice(LOCATION_DESCRIPTIONS).format(mood=mood)
    parts = [_capitalize(opening), f"The place {place}."]
    if request.length == "long":
        background = r.choice(CHARACTER_BACKGROUNDS).format(character=character)
        parts.append(f"{_capitalize(background)}.")
    parts.append(f"Facing what lay ahead, they decided to {action}.")
    if request.length == "long":
        parts.append(
            f"It would be a {mood} adventure, and they had no idea what "
            "challenges and opportunities were waiting for them."
        )
    else:
        parts.append(f"It would be a {mood} adventure.")
    return " ".join(parts)


async def generate_beginning_with_ai(
    request: StoryGenerationRequest,
    config: AIConfig,
    llm: LLM | None = None,
    rng: random.Random | None = None,
) -> str:
    """Ask the model for an opening; use the template on any failure."""
    if not config.ai_enabled:
        logger.warning("AI generation not configured, using template generation")
        return generate_beginning(request, rng)

    if llm is None:
        llm = ChatCompletionLLM.from_config(config)
    try:
        return await llm(SYSTEM_PROMPT, build_user_prompt(request))
    except (LLMError, PromptError) as e:
        logger.warning("AI generation failed, falling back to template: %s", e)
        return generate_beginning(request, rng)


def continuation_suggestions(parameters: StoryParameters) -> list[str]:
    """Three prompts for what might happen next in a story."""
    characters = [c for c in parameters.characters or [] if c.strip()]
    hero = characters[0] if characters else "the protagonist"
    place = parameters.location or "this place"
    return [
        f"Suddenly, {hero} stumbles on an unexpected clue...",
        f"Just then, something strange begins to happen in {place}...",
        f"{_capitalize(hero)} remembers something from {parameters.time or 'long ago'}...",
    ]
