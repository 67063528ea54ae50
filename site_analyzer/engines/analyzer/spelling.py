"""
Spell-check capability used for typo detection.

The dictionary is loaded once per process. If loading fails, typo detection
stays disabled for the lifetime of the process; it is never retried per page.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable

import structlog
from spellchecker import SpellChecker

from site_analyzer.core.config import get_settings
from site_analyzer.engines.base import MAX_TYPOS
from site_analyzer.engines.scoring.engine import clean_token, is_spellcheck_candidate

logger = structlog.get_logger(__name__)


class SpellCheckCapability:
    """Word -> is-correctly-spelled, backed by a pyspellchecker dictionary."""

    def __init__(self, checker: SpellChecker):
        self._checker = checker

    def is_correct(self, word: str) -> bool:
        return bool(self._checker.known([word]))

    def find_typos(self, tokens: Iterable[str], limit: int = MAX_TYPOS) -> list[str]:
        """Up to `limit` unique unknown words, in order of first appearance."""
        typos: list[str] = []
        seen: set[str] = set()
        for token in tokens:
            word = clean_token(token)
            if word in seen or not is_spellcheck_candidate(word):
                continue
            seen.add(word)
            if not self.is_correct(word):
                typos.append(word)
                if len(typos) >= limit:
                    break
        return typos


@lru_cache()
def get_spell_checker() -> SpellCheckCapability | None:
    """
    Process-wide spell checker, or None when disabled or unavailable.
    Cached either way, so a failed load is not retried.
    """
    settings = get_settings()
    if not settings.SPELLCHECK_ENABLED:
        logger.info("Spell check disabled by configuration")
        return None
    try:
        checker = SpellChecker(language=settings.SPELLCHECK_LANGUAGE)
    except Exception as e:
        logger.warning("Spell-check dictionary unavailable, typo detection disabled", error=str(e))
        return None
    logger.info("Spell-check dictionary loaded", language=settings.SPELLCHECK_LANGUAGE)
    return SpellCheckCapability(checker)
