"""Filter harmless words out of risky-phrase lists.

Models routinely flag everyday vocabulary (sports terms, family words,
gadgets). A phrase survives only if it is not on the allow-list and any
family/child or technology term in it appears next to an explicit
problematic-context marker.
"""

import logging
import re

logger = logging.getLogger(__name__)

FALSE_POSITIVE_WORDS: frozenset[str] = frozenset({
    # Pronouns and basic words
    "you", "worried", "rival", "team", "player", "goal", "score", "match", "game", "play",
    "win", "lose", "good", "bad", "big", "small", "new", "old", "first", "last", "best", "worst",
    # Financial
    "money", "dollar", "price", "cost", "value", "worth", "expensive", "cheap", "million", "billion",
    # Time and measurement
    "year", "month", "week", "day", "time", "people", "person", "thing", "way", "work",
    # Common verbs
    "make", "take", "get", "go", "come", "see", "know", "think", "feel", "want", "need", "like",
    "look", "say", "tell", "ask", "give", "find", "use", "try", "call", "help", "start", "stop",
    "keep", "put", "bring", "turn", "move", "change", "show", "hear", "run", "walk",
    "sit", "stand", "wait", "watch", "read", "write", "speak", "talk", "listen", "learn", "teach",
    # Sports and activities
    "buy", "sell", "pay", "earn", "spend", "save", "beat", "hit", "catch", "throw",
    "kick", "jump", "swim", "dance", "sing", "laugh", "cry", "smile", "frown", "love", "hate",
    "dislike", "happy", "sad", "angry", "excited", "bored", "tired", "hungry", "thirsty",
    # Descriptive
    "hot", "cold", "warm", "cool", "fast", "slow", "quick", "easy", "hard", "simple", "complex",
    "right", "wrong", "true", "false", "yes", "no", "maybe", "sure", "okay", "fine", "great", "awesome",
    # Family and children
    "kid", "kids", "child", "children", "boy", "girl", "son", "daughter",
    "family", "parent", "mom", "dad", "mother", "father", "sister", "brother", "baby", "toddler",
    "teen", "teenager", "youth", "young", "elderly", "senior", "adult", "grown", "grownup",
    # Technology
    "phone", "device", "mobile", "cell", "smartphone", "iphone", "android", "tablet", "computer",
    "laptop", "desktop", "screen", "display", "monitor", "keyboard", "mouse", "touch", "tap",
    "swipe", "click", "type", "text", "message", "ring", "dial", "number", "contact", "address",
    "email", "mail",
    # Home and school
    "home", "house", "room", "bedroom", "kitchen", "bathroom", "living", "dining", "office",
    "school", "class", "teacher", "student", "classroom", "homework", "study", "education",
    # Relationships
    "friend", "buddy", "pal", "mate", "colleague", "neighbor", "cousin", "uncle", "aunt", "grandma",
    "grandpa", "grandmother", "grandfather", "nephew", "niece", "relative", "relation",
})

FAMILY_CHILD_TERMS: frozenset[str] = frozenset({
    "kid", "kids", "child", "children", "boy", "girl", "son", "daughter", "baby", "toddler",
    "teen", "teenager",
})

FAMILY_CHILD_PROBLEMATIC_CONTEXTS: tuple[str, ...] = (
    "abuse", "exploit", "kidnap", "traffic", "porn", "sexual", "inappropriate", "harm",
    "danger", "risk",
)

TECHNOLOGY_TERMS: frozenset[str] = frozenset({
    "phone", "device", "mobile", "cell", "smartphone", "tablet", "computer", "laptop",
})

TECHNOLOGY_PROBLEMATIC_CONTEXTS: tuple[str, ...] = (
    "scam", "hack", "virus", "malware", "spy", "track", "steal", "illegal", "fraud", "phishing",
    "exploit",
)

MIN_PHRASE_LENGTH = 3

_WORD_RE = re.compile(r"[a-z0-9']+")
_PUNCTUATION_ONLY_RE = re.compile(r"^[^\w\s]*$")


def _words(phrase: str) -> set[str]:
    return set(_WORD_RE.findall(phrase.lower()))


def is_false_positive(phrase: str) -> bool:
    """True if the whole phrase is an allow-listed harmless word."""
    return phrase.strip().lower() in FALSE_POSITIVE_WORDS


def has_problematic_context(phrase: str, terms: frozenset[str], markers: tuple[str, ...]) -> bool:
    """True if phrase contains one of ``terms`` and one of ``markers``."""
    if not _words(phrase) & terms:
        return False
    lowered = phrase.lower()
    return any(marker in lowered for marker in markers)


def should_flag_phrase(phrase: str) -> bool:
    """
    Decide whether a risky phrase should be surfaced.

    Rejects allow-listed words, phrases shorter than three characters,
    pure punctuation, and family/child or technology vocabulary without
    a problematic-context marker such as "abuse" or "scam".
    """
    if not phrase or not isinstance(phrase, str):
        return False

    phrase = phrase.strip()

    if is_false_positive(phrase):
        logger.debug(f"Filtering out false positive: '{phrase}'")
        return False

    if len(phrase) < MIN_PHRASE_LENGTH:
        return False

    if _PUNCTUATION_ONLY_RE.match(phrase):
        return False

    words = _words(phrase)

    if words & FAMILY_CHILD_TERMS and not has_problematic_context(
        phrase, FAMILY_CHILD_TERMS, FAMILY_CHILD_PROBLEMATIC_CONTEXTS
    ):
        logger.debug(f"Filtering out family/child term without problematic context: '{phrase}'")
        return False

    if words & TECHNOLOGY_TERMS and not has_problematic_context(
        phrase, TECHNOLOGY_TERMS, TECHNOLOGY_PROBLEMATIC_CONTEXTS
    ):
        logger.debug(f"Filtering out technology term without problematic context: '{phrase}'")
        return False

    return True


def filter_false_positives(phrases: list[str]) -> list[str]:
    """Keep flaggable phrases, trimmed and de-duplicated case-insensitively."""
    if not isinstance(phrases, list):
        return []

    seen: set[str] = set()
    kept: list[str] = []
    for phrase in phrases:
        if not should_flag_phrase(phrase):
            continue
        cleaned = phrase.strip()
        if cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        kept.append(cleaned)
    return kept


def filter_phrases_by_category(phrases_by_category: dict[str, list[str]]) -> dict[str, list[str]]:
    """Apply filter_false_positives to every category, dropping empty ones."""
    filtered = {}
    for category, phrases in phrases_by_category.items():
        kept = filter_false_positives(phrases)
        if kept:
            filtered[category] = kept
    return filtered
