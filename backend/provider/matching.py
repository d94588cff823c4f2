"""
Fuzzy title matching between catalogue titles and provider search results.
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

from .models import AudioType, MatchCandidate, SearchResult

EXACT_SCORE = 100.0
TITLE_CONTAINS_SCORE = 80.0
ALT_TITLE_CONTAINS_SCORE = 75.0
WORD_OVERLAP_WEIGHT = 60.0
LENGTH_PENALTY_PER_CHAR = 2.0
LENGTH_PENALTY_CAP = 20.0
DEFAULT_THRESHOLD = 30.0

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_SEASON_TOKENS = re.compile(r"\s*\b(?:season|part|cour)\b\s*\d*", re.IGNORECASE)
_PUNCTUATION = re.compile(r"[^a-zA-Z0-9\s]")


def normalize_title(value: str) -> str:
    lowered = _NON_ALNUM.sub("", value.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def simplify_query(value: str) -> str:
    """Drop season/part/cour markers and punctuation from a search term."""
    simplified = _SEASON_TOKENS.sub("", value)
    simplified = _PUNCTUATION.sub("", simplified)
    return _WHITESPACE.sub(" ", simplified).strip()


def is_dub(result: SearchResult) -> bool:
    return "(dub)" in result.display_title.lower() or result.slug.endswith("-dub")


def _filter_audio(results: Sequence[SearchResult], audio_type: AudioType) -> List[SearchResult]:
    want_dub = audio_type == "dub"
    filtered = [result for result in results if is_dub(result) == want_dub]
    return filtered or list(results)


def _word_overlap(target: str, words: List[str]) -> float:
    if not target:
        return 0.0
    target_words = target.split(" ")
    shared = sum(1 for word in target_words if word in words)
    return shared / len(target_words)


def score_candidate(result: SearchResult, target: str, alt_target: str = "") -> float:
    """Score one search result against already-normalized query titles."""
    norm = normalize_title(result.display_title)

    if norm == target or (alt_target and norm == alt_target):
        score = EXACT_SCORE
    elif target in norm or norm in target:
        score = TITLE_CONTAINS_SCORE
    elif alt_target and (alt_target in norm or norm in alt_target):
        score = ALT_TITLE_CONTAINS_SCORE
    else:
        words = norm.split(" ")
        overlap = max(_word_overlap(target, words), _word_overlap(alt_target, words))
        score = overlap * WORD_OVERLAP_WEIGHT

    # sequels and spin-offs carry the query as a prefix
    target_len = min(len(target), len(alt_target)) if alt_target else len(target)
    excess = len(norm) - target_len
    if excess > 0 and score < EXACT_SCORE:
        score -= min(excess * LENGTH_PENALTY_PER_CHAR, LENGTH_PENALTY_CAP)
    return score


def rank_candidates(
    results: Sequence[SearchResult],
    title: str,
    alt_title: Optional[str] = None,
    audio_type: AudioType = "sub",
) -> List[MatchCandidate]:
    candidates = _filter_audio(results, audio_type)
    target = normalize_title(title)
    alt_target = normalize_title(alt_title) if alt_title else ""

    scored = [
        MatchCandidate(result=result, score=score_candidate(result, target, alt_target))
        for result in candidates
    ]
    scored.sort(key=lambda item: (-item.score, len(normalize_title(item.result.display_title))))
    return scored


def find_best_match(
    results: Sequence[SearchResult],
    title: str,
    alt_title: Optional[str] = None,
    audio_type: AudioType = "sub",
    *,
    threshold: float = DEFAULT_THRESHOLD,
) -> Optional[MatchCandidate]:
    """Return the top-ranked candidate when it clears the acceptance threshold."""
    if not results:
        return None
    ranked = rank_candidates(results, title, alt_title, audio_type)
    if ranked and ranked[0].score > threshold:
        return ranked[0]
    return None
