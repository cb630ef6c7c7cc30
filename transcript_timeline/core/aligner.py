"""Alignment Engine: map freely edited text back onto reference words.

WHY: After the user rewrites the transcript, we need to know which of
the edited words are still the original recorded words (and so keep
their audio) and which are new. A longest-common-subsequence alignment
gives the maximal set of unchanged words while preserving order.

HOW: The edited text is split on whitespace. A classic (n+1) x (m+1)
LCS table is filled where two items match iff the edited token equals
the reference word's text exactly. Backtracking from dp[n][m] emits
linked tokens for matches, skips reference words that are absent, and
emits unlinked (edited) tokens for everything else.

RULES:
- Matching is exact: case-sensitive, codepoint-exact, no normalization
- Tie-break: when dp[i][j-1] >= dp[i-1][j], consume the reference word
  (treat it as deleted) before consuming the edited token as an edit.
  This decides which word's timing lands in a changed region and must
  not change
- Output order equals the edited text's left-to-right order
- Empty / whitespace-only text yields no tokens
- O(n*m) time and memory; inputs are utterance-scale (tens to low
  hundreds of words)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from transcript_timeline.core.ir import DisplayToken, ReferenceWord, new_token_id

logger = logging.getLogger(__name__)


def tokenize(text: str) -> list[str]:
    """Split on runs of whitespace, dropping empty pieces."""
    return text.split()


def build_lcs_table(edited: Sequence[str], reference: Sequence[ReferenceWord]) -> list[list[int]]:
    """Fill the LCS length table for edited tokens vs. reference words.

    RULES:
    - table[i][j] is the LCS length of edited[:i] and reference[:j]
    - Row 0 and column 0 are all zeros
    """
    n = len(edited)
    m = len(reference)
    dp = [[0] * (m + 1) for _ in range(n + 1)]

    for i in range(1, n + 1):
        token = edited[i - 1]
        row = dp[i]
        prev_row = dp[i - 1]
        for j in range(1, m + 1):
            if token == reference[j - 1].text:
                row[j] = prev_row[j - 1] + 1
            else:
                row[j] = max(prev_row[j], row[j - 1])
    return dp


def align(
    edited_text: str,
    reference: Sequence[ReferenceWord],
    new_id: Callable[[], str] = new_token_id,
) -> list[DisplayToken]:
    """Align edited text against the reference words.

    WHY: Every text change in the editor produces a new token list whose
    source_word_ids say which reference words survived the edit.

    HOW: Builds the LCS table, then walks back from the bottom-right
    corner. Tokens are collected in reverse and flipped once at the end.

    RULES:
    - A matched token links exactly one reference word
    - An unmatched token links none (is_edited=True)
    - Reference words absent from the text produce no token
    - Each reference word is linked at most once

    Args:
        edited_text: The full current text of the editor.
        reference: The immutable reference word sequence.
        new_id: Factory for token ids (fresh per pass).

    Returns:
        Display tokens in the edited text's order.
    """
    edited = tokenize(edited_text)
    if not edited:
        return []

    dp = build_lcs_table(edited, reference)

    reversed_tokens: list[DisplayToken] = []
    i = len(edited)
    j = len(reference)

    while i > 0 or j > 0:
        if i > 0 and j > 0 and edited[i - 1] == reference[j - 1].text:
            reversed_tokens.append(DisplayToken(
                id=new_id(),
                text=edited[i - 1],
                source_word_ids=(reference[j - 1].id,),
            ))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or dp[i][j - 1] >= dp[i - 1][j]):
            # reference word deleted from the text
            j -= 1
        else:
            reversed_tokens.append(DisplayToken(id=new_id(), text=edited[i - 1]))
            i -= 1

    reversed_tokens.reverse()

    logger.debug(
        "Aligned %d edited tokens against %d reference words (%d kept)",
        len(edited), len(reference), dp[len(edited)][len(reference)],
    )
    return reversed_tokens
