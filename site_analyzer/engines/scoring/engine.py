"""
Scoring Heuristics - Pure functions turning extracted page facts into scores.

Scoring Model:
- Readability: Flesch Reading Ease over whitespace tokens, clamped to 0-100
- Structure: 50 base points + 5 per structural container, capped at 100
- SEO: additive checklist over title, meta description, H1, alt text, length
- AI / GEO: structured data, structure, readability, question headings, E-E-A-T
- Keywords: top 5 non-stop-word tokens by frequency

Nothing here touches the rendering surface: identical inputs always give
identical outputs.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import Iterable, Sequence

from site_analyzer.engines.base import Heading, KeywordCount

# ─────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────

LONG_WORD_LENGTH = 20
KEYWORD_LIMIT = 5
MIN_KEYWORD_LENGTH = 4
SEO_MIN_WORD_COUNT = 300

TITLE_LENGTH_RANGE = (10, 60)
META_DESC_LENGTH_RANGE = (50, 160)

VALUABLE_SCHEMA_TYPES = frozenset({
    "Article",
    "Product",
    "FAQPage",
    "Organization",
    "BreadcrumbList",
    "Recipe",
    "Review",
})

QUESTION_WORDS = frozenset({"who", "what", "where", "when", "why", "how", "can", "does", "is", "are"})

STOP_WORDS = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i", "it", "for", "not", "on",
    "with", "he", "as", "you", "do", "at", "this", "but", "his", "by", "from", "they", "we",
    "say", "her", "she", "or", "an", "will", "my", "one", "all", "would", "there", "their",
    "what", "so", "up", "out", "if", "about", "who", "get", "which", "go", "me", "is", "are",
    "was", "were",
})

_TOKEN_STRIP_RE = re.compile(r"[^\w'-]")
_NON_ALPHA_RE = re.compile(r"[^a-z]")
_VOWEL_RUN_RE = re.compile(r"[aeiouy]+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_ALPHA_ONLY_RE = re.compile(r"^[a-zA-Z]+$")


# ─────────────────────────────────────────────
# Tokens
# ─────────────────────────────────────────────

def tokenize(text: str) -> list[str]:
    """Split body text on runs of whitespace."""
    return text.split()


def clean_token(token: str) -> str:
    """Strip everything except word characters, apostrophes and hyphens."""
    return _TOKEN_STRIP_RE.sub("", token)


def count_long_words(tokens: Iterable[str]) -> int:
    return sum(1 for token in tokens if len(clean_token(token)) > LONG_WORD_LENGTH)


def is_spellcheck_candidate(word: str) -> bool:
    return len(word) > 3 and bool(_ALPHA_ONLY_RE.match(word))


def count_sentences(text: str) -> int:
    # The empty piece after a closing "." is not a sentence, so
    # "Hello world." is one sentence rather than two.
    segments = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    return max(1, len(segments))


def count_syllables(word: str) -> int:
    """
    Vowel-run estimate of syllables in one word.

    The word is lowercased, stripped to letters and loses a trailing "e"
    before counting runs of vowels. Never returns less than 1.
    """
    clean = _NON_ALPHA_RE.sub("", word.lower())
    if clean.endswith("e"):
        clean = clean[:-1]
    return len(_VOWEL_RUN_RE.findall(clean)) or 1


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ─────────────────────────────────────────────
# Scores
# ─────────────────────────────────────────────

def readability_score(tokens: Sequence[str], sentence_count: int) -> int:
    """
    Flesch Reading Ease:
    206.835 - 1.015 × (words / sentences) - 84.6 × (syllables / words)

    Clamped to [0, 100]. A text without words scores 0.
    """
    word_count = len(tokens)
    if word_count == 0:
        return 0
    sentence_count = max(1, sentence_count)
    syllables = sum(count_syllables(token) for token in tokens)
    raw = 206.835 - 1.015 * (word_count / sentence_count) - 84.6 * (syllables / word_count)
    return min(100, max(0, _round_half_up(raw)))


def structure_score(structural_container_count: int) -> int:
    return min(100, 50 + 5 * max(0, structural_container_count))


def extract_keywords(tokens: Iterable[str], limit: int = KEYWORD_LIMIT) -> list[KeywordCount]:
    """Most frequent content words; ties keep first-seen order."""
    counts: Counter[str] = Counter()
    for token in tokens:
        word = _NON_ALPHA_RE.sub("", token.lower())
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS:
            counts[word] += 1
    return [KeywordCount(word=word, count=count) for word, count in counts.most_common(limit)]


def has_valid_heading_hierarchy(headings: Sequence[Heading]) -> bool:
    """
    True when at least one heading exists and no heading skips a level
    relative to the previous one. The sequence starts at level 0, so a
    document opening with an H2 already counts as a skip.
    """
    if not headings:
        return False
    previous = 0
    for heading in headings:
        if heading.level > previous + 1:
            return False
        previous = heading.level
    return True


def is_question_heading(text: str) -> bool:
    text = text.strip().lower()
    if not text:
        return False
    if text.endswith("?"):
        return True
    first_word = re.split(r"[\s,:;!?.]+", text, maxsplit=1)[0]
    return first_word in QUESTION_WORDS


def count_question_headings(headings: Sequence[Heading]) -> int:
    return sum(1 for heading in headings if is_question_heading(heading.text))


def keywords_in_headings(keywords: Sequence[KeywordCount], headings: Sequence[Heading]) -> int:
    heading_texts = [h.text.lower() for h in headings]
    return sum(1 for k in keywords if any(k.word in text for text in heading_texts))


def _length_points(value: str, length_range: tuple[int, int]) -> int:
    if not value:
        return 0
    low, high = length_range
    return 20 if low <= len(value) <= high else 10


def seo_score(
    title: str,
    meta_description: str,
    h1: str | None,
    missing_alt_tags: int,
    word_count: int,
    keywords: Sequence[KeywordCount] = (),
    headings: Sequence[Heading] = (),
) -> int:
    """
    Additive on-page SEO checklist, capped at 100.

    +20/+10  title length in [10, 60] / any title
    +20/+10  meta description length in [50, 160] / any description
    +20      an H1 exists
    +20      no image is missing alt text
    +20      more than 300 words
    +10      a top keyword appears in a heading
    +10      heading levels never skip
    """
    score = _length_points(title, TITLE_LENGTH_RANGE)
    score += _length_points(meta_description, META_DESC_LENGTH_RANGE)
    if h1:
        score += 20
    if missing_alt_tags == 0:
        score += 20
    if word_count > SEO_MIN_WORD_COUNT:
        score += 20
    if keywords_in_headings(keywords, headings) > 0:
        score += 10
    if has_valid_heading_hierarchy(headings):
        score += 10
    return min(100, score)


def ai_score(
    has_schema: bool,
    schema_types: Sequence[str],
    structure: int,
    readability: int,
    question_headings: int,
    has_author: bool,
    has_date: bool,
) -> int:
    """
    Generative-engine (GEO) friendliness, capped at 100.

    Structured data is worth up to 40: 10 for any JSON-LD plus 30 when an
    allow-listed type is present (10 otherwise).
    """
    score = 0
    if has_schema:
        score += 10
        score += 30 if any(t in VALUABLE_SCHEMA_TYPES for t in schema_types) else 10
    if structure > 70:
        score += 15
    if readability > 60:
        score += 15
    if question_headings > 0:
        score += 15
    if has_author:
        score += 10
    if has_date:
        score += 5
    return min(100, score)


def text_to_code_ratio(text_length: int, document_bytes: int) -> float:
    if document_bytes <= 0:
        return 0.0
    return text_length / document_bytes
