"""Prompt builders for narrative generation.

Every call shares SYSTEM_TONE; the per-call prompt fixes the sentence count.
"""

from collections.abc import Sequence

SYSTEM_TONE = """You write day guides as someone who lives in the city or visits it often.
Voice: calm, observant, first person plural or second person, never a sales pitch.

Rules:
- No marketing language, superlatives, or exclamation marks.
- No poetic metaphors and no dramatic storytelling.
- Prefer concrete details: what the place is, when it is quiet, what to order or look at.
- Less emotion, more presence. Less explanation, more confidence.
- Respect the requested sentence count exactly.
- When asked for JSON, reply with JSON only."""


def _interests(interests: Sequence[str]) -> str:
    return ", ".join(interests) if interests else "general sightseeing"


def day_concept_prompt(
    city: str, audience: str, interests: Sequence[str], budget: int, date: str
) -> str:
    return f"""Plan one day in {city} on {date} for {audience}.
Interests: {_interests(interests)}. Total budget: about €{budget}.

Reply with JSON:
{{"concept": "<one short sentence describing the mood of the day>",
  "timeSlots": [
    {{"time": "HH:MM", "activity": "<short label>", "category": "<cafe|restaurant|museum|park|viewpoint|market|bar|attraction>",
      "description": "<one sentence>", "keywords": ["<search keyword>", "..."], "budgetTier": "<free|budget|moderate|premium>"}}
  ]}}

Use 8 to 10 time slots between 09:00 and 21:30, in time order.
Include breakfast near 09:00, lunch between 12:30 and 14:00, dinner between 19:30 and 21:00."""


def describe_prompt(
    name: str, category: str, city: str, interests: Sequence[str], audience: str, concept: str
) -> str:
    return (
        f"Describe {name}, a {category} in {city}, for {audience} interested in "
        f"{_interests(interests)}. The day's mood: {concept}. Write exactly 2 sentences."
    )


def recommend_prompt(
    name: str, category: str, city: str, interests: Sequence[str], audience: str, concept: str
) -> str:
    return (
        f"Give one practical recommendation for a visit to {name}, a {category} in {city}, "
        f"for {audience} interested in {_interests(interests)}. The day's mood: {concept}. "
        f"Write exactly 1 sentence."
    )


def title_prompt(city: str, audience: str, concept: str) -> str:
    return (
        f"Write a title for a day guide to {city} for {audience}. Mood: {concept}. "
        f"At most 8 words, no quotes."
    )


def subtitle_prompt(city: str, date: str, audience: str, concept: str) -> str:
    return (
        f"Write a subtitle for a day guide to {city} on {date} for {audience}. "
        f"Mood: {concept}. One sentence, at most 15 words."
    )


def intro_prompt(city: str, audience: str, concept: str) -> str:
    return (
        f"Write the opening paragraph of a day guide to {city} for {audience}. "
        f"Mood: {concept}. Write 2 to 3 sentences."
    )


def closing_prompt(city: str, audience: str, concept: str) -> str:
    return (
        f"Write the closing lines of a day guide to {city} for {audience}. "
        f"Mood: {concept}. Write 1 to 2 sentences."
    )


def caption_prompt(city: str, concept: str) -> str:
    return (
        f"Write a photo caption for a street scene in {city}. Mood: {concept}. "
        f"Fewer than 10 words, no quotes."
    )


def slide_prompt(city: str, concept: str) -> str:
    return f"""Write a short pause in a day guide to {city}. Mood: {concept}.
Reply with JSON: {{"title": "<2 to 4 words>", "text": "<exactly 2 sentences>"}}"""


def three_columns_prompt(city: str, concept: str) -> str:
    return f"""Describe three ways to spend a late afternoon in {city}. Mood: {concept}.
Reply with JSON: {{"columns": ["<1 sentence>", "<1 sentence>", "<1 sentence>"]}}"""


def location_block_prompt(
    name: str,
    category: str,
    purpose: str,
    city: str,
    audience: str,
    interests: Sequence[str],
    concept: str,
    exclude: Sequence[str],
) -> str:
    excluded = ", ".join(exclude) if exclude else "none"
    return f"""Time of day: {purpose}. City: {city}. Audience: {audience}.
Interests: {_interests(interests)}. Mood of the day: {concept}.
Main place: {name} ({category}).

Reply with JSON:
{{"mainLocation": {{"description": "<2 sentences>", "recommendation": "<1 sentence>"}},
  "alternativeLocations": [
    {{"name": "<real place in {city}>", "address": "<street address>", "description": "<2 sentences>", "recommendation": "<1 sentence>"}},
    {{"name": "...", "address": "...", "description": "...", "recommendation": "..."}}
  ]}}

Give exactly 2 alternatives that suit the same time of day.
Do not suggest any of these places: {excluded}."""


def weather_prompt(city: str, date: str) -> str:
    return f"""Give typical weather for {city} on {date}.
Reply with JSON: {{"temperature": <celsius number>, "description": "<short phrase>",
"clothing": "<what to wear, 1 sentence>", "tips": "<1 sentence>"}}"""
