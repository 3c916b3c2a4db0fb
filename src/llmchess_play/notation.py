"""
Notation normalization for LLM move replies.

normalize_notation() turns a free-form reply ("I'd play Nf3!", "e8=Q.", "```O-O```")
into a bare move token:
1) strip whitespace, code fences, one trailing period and trailing !/? annotations;
2) extract the first castling / long-algebraic / SAN-shaped substring;
3) otherwise fall back to the first whitespace-delimited word.

Never raises; the worst case is the trimmed input.
"""
from __future__ import annotations

import re

CASTLE_RE = re.compile(r"(?<![\w-])(O-O-O|O-O|0-0-0|0-0)(?![\w-])")
# Long algebraic / coordinate forms: e2e4, e2-e4, Ng1-f3, Qh4xe1, e7e8q
LONG_RE = re.compile(r"(?<![A-Za-z0-9])([KQRBN]?[a-h][1-8][-x]?[a-h][1-8](?:=?[QRBNqrbn])?[+#]?)(?![A-Za-z0-9])")
SAN_RE = re.compile(r"(?<![A-Za-z0-9])([KQRBN]?[a-h]?[1-8]?x?[a-h][1-8](?:=?[QRBN])?[+#]?)(?![A-Za-z0-9])")

CASTLE_TOKENS = {"O-O": "kingside", "0-0": "kingside", "O-O-O": "queenside", "0-0-0": "queenside"}


def _strip_code_fence(text: str) -> str:
    """Remove simple ``` fences (and inline backticks) if present."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```") and len(text) >= 6:
        inner = text[3:-3]
        if "\n" in inner:
            first, rest = inner.split("\n", 1)
            # drop a language tag such as ```text
            inner = rest if first.strip().isalpha() or not first.strip() else inner
        return inner.strip()
    return text.strip("`").strip()


def clean_notation(raw: str) -> str:
    """Trim, drop code fences, one trailing period and trailing evaluation marks."""
    text = _strip_code_fence(raw or "")
    if text.endswith("."):
        text = text[:-1]
    return text.rstrip("!?").strip()


def extract_move_token(text: str) -> str | None:
    """Return the earliest move-shaped substring or None.

    Matches starting at the same position prefer castling, then long algebraic, then SAN.
    """
    if not text:
        return None
    found = []
    for rank, pattern in enumerate((CASTLE_RE, LONG_RE, SAN_RE)):
        m = pattern.search(text)
        if m:
            found.append((m.start(1), rank, m.group(1)))
    return min(found)[2] if found else None


def first_word(text: str) -> str:
    parts = text.split()
    return parts[0] if parts else text


def normalize_notation(raw: str) -> str:
    """Best-effort bare move token for a raw LLM reply."""
    cleaned = clean_notation(raw)
    token = extract_move_token(cleaned)
    if token:
        return token
    return first_word(cleaned).rstrip(".!?,;:")


def castle_side(token: str) -> str | None:
    """'kingside' / 'queenside' for O-O / O-O-O (and 0-0 variants), ignoring check marks."""
    return CASTLE_TOKENS.get((token or "").rstrip("+#"))
