from __future__ import annotations

"""Delimiter sniffing for uploaded CSV text.

Only the first line (or the first SCAN_LIMIT characters when no newline is
found) is inspected. Candidates are counted outside quoted spans only.
"""

__all__ = [
    "CANDIDATES",
    "SCAN_LIMIT",
    "detect_delimiter",
]

# 同数の場合はこの順で先勝ち
CANDIDATES: tuple[str, ...] = (",", ";", "\t")
SCAN_LIMIT = 5000


def detect_delimiter(text: str) -> str:
    """Return the most frequent unquoted delimiter of the first line.

    A doubled quote (``""``) is a literal quote and does not toggle the
    quoted state. Ties, including an empty input, resolve to ``","``.
    """
    counts = dict.fromkeys(CANDIDATES, 0)
    in_quotes = False
    limit = min(len(text), SCAN_LIMIT)
    i = 0
    while i < limit:
        ch = text[i]
        if ch == '"':
            if i + 1 < len(text) and text[i + 1] == '"':
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue
        if not in_quotes:
            if ch in counts:
                counts[ch] += 1
            elif ch == "\n":
                break
        i += 1

    best = CANDIDATES[0]
    for cand in CANDIDATES:
        if counts[cand] > counts[best]:
            best = cand
    return best
