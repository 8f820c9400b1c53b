"""
Fuzzy search over pull request text.

Implements order-preserving subsequence matching scored with a single
dynamic-programming pass per query character:
- Each matched character earns a base score
- Matches at word boundaries and at the very start earn a bonus
- Runs of adjacent matches earn a consecutive bonus
- Gaps between matches cost a start penalty plus a per-character penalty
- Matches that start late in the candidate are penalized a little

Matching is case-insensitive. Results are sorted by score (descending) with
ties broken by the candidate's original position, so output is deterministic.
"""

from __future__ import annotations

from collections.abc import Sequence

SCORE_MATCH = 16
BONUS_CONSECUTIVE = 8
BONUS_BOUNDARY = 8
BONUS_FIRST_CHAR = 8
PENALTY_GAP_START = 3
PENALTY_GAP_EXTEND = 1
MAX_LEADING_PENALTY = 15

_NO_MATCH = -(10**9)


def score(query: str, candidate: str) -> int | None:
    """Score how well ``query`` fuzzy-matches ``candidate``.

    Args:
        query: Text typed by the user
        candidate: Text to match against

    Returns:
        Score (higher is better), or None when ``query`` is not a
        case-insensitive subsequence of ``candidate``. An empty query
        scores 0 against everything.
    """
    if not query:
        return 0

    needle = query.lower()
    haystack = candidate.lower()
    if len(needle) > len(haystack) or not _is_subsequence(needle, haystack):
        return None

    width = len(haystack)
    # Lowercasing can change length for a few code points; camel-case hints are lost then.
    source = candidate if len(candidate) == width else haystack
    bonuses = [_position_bonus(source, j) for j in range(width)]

    # First query character: match anywhere, penalized by how late it starts.
    previous = [_NO_MATCH] * width
    for j in range(width):
        if haystack[j] == needle[0]:
            first = BONUS_FIRST_CHAR if j == 0 else 0
            previous[j] = SCORE_MATCH + bonuses[j] + first - min(j, MAX_LEADING_PENALTY)

    for i in range(1, len(needle)):
        current = [_NO_MATCH] * width
        gapped = _NO_MATCH
        for j in range(i, width):
            if j >= 2:
                gapped = max(gapped - PENALTY_GAP_EXTEND, previous[j - 2] - PENALTY_GAP_START)
            if haystack[j] != needle[i]:
                continue
            best = gapped
            if previous[j - 1] > _NO_MATCH:
                best = max(best, previous[j - 1] + BONUS_CONSECUTIVE)
            if best > _NO_MATCH // 2:
                current[j] = best + SCORE_MATCH + bonuses[j]
        previous = current

    result = max(previous)
    return result if result > _NO_MATCH // 2 else None


def search(query: str, candidates: Sequence[str]) -> list[tuple[int, int]]:
    """Rank candidates against a query.

    Args:
        query: Text typed by the user
        candidates: Candidate strings in their original order

    Returns:
        ``(index, score)`` pairs for every matching candidate, best first.
        An empty query returns every candidate in original order.
    """
    if not query:
        return [(index, 0) for index in range(len(candidates))]

    scored: list[tuple[int, int]] = []
    for index, candidate in enumerate(candidates):
        value = score(query, candidate)
        if value is not None:
            scored.append((index, value))

    scored.sort(key=lambda pair: (-pair[1], pair[0]))
    return scored


def _is_subsequence(needle: str, haystack: str) -> bool:
    it = iter(haystack)
    return all(ch in it for ch in needle)


def _position_bonus(text: str, j: int) -> int:
    """Word-boundary bonus for the character at position ``j``."""
    if j == 0:
        return BONUS_BOUNDARY
    prev, cur = text[j - 1], text[j]
    if not prev.isalnum():
        return BONUS_BOUNDARY
    if prev.islower() and cur.isupper():
        return BONUS_BOUNDARY
    if prev.isalpha() and cur.isdigit():
        return BONUS_BOUNDARY // 2
    return 0
