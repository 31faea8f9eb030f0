from __future__ import annotations

import re
from typing import Any

import pandas as pd

"""Shared category / status lookup tables.

Import (normalizer), persistence (lots_store), pricing and display
(inventory_view) all go through this module so that the canonical labels
never drift between code paths.

Three spellings of a category exist:
- label:  "Commercial Corner"   (display / import result)
- key:    "commercial corner"   (comparison, price map key)
- store:  "commercial_corner"   (DB enum / price table column)
"""

__all__ = [
    "CATEGORY_LABELS",
    "STATUS_LABELS",
    "normalize_category_key",
    "normalize_status_key",
    "status_matches",
    "to_title_case",
    "format_category_label",
    "format_status_label",
    "canonical_category",
    "to_store_category",
    "to_store_status",
    "format_currency",
    "format_date",
]

CATEGORY_LABELS: dict[str, str] = {
    "regular": "Regular",
    "regular corner": "Regular Corner",
    "prime": "Prime",
    "prime corner": "Prime Corner",
    "commercial": "Commercial",
    "commercial corner": "Commercial Corner",
    "premium": "Premium",
    "standard": "Standard",
}

STATUS_LABELS: dict[str, str] = {
    "open": "Open",
    "available": "Open",
    "reserved": "Reserved",
    "sold": "Sold",
}

# import 時の省略表記 (c / cc / p / pc / rc / r) -> ラベル
_IMPORT_CATEGORY_ALIASES: dict[str, str] = {
    "commercial": "Commercial",
    "c": "Commercial",
    "commercial corner": "Commercial Corner",
    "commercial_corner": "Commercial Corner",
    "cc": "Commercial Corner",
    "prime": "Prime",
    "p": "Prime",
    "prime corner": "Prime Corner",
    "prime_corner": "Prime Corner",
    "pc": "Prime Corner",
    "regular corner": "Regular Corner",
    "regular_corner": "Regular Corner",
    "rc": "Regular Corner",
    "regular": "Regular",
    "r": "Regular",
    "": "Regular",
}

_STORE_STATUS: dict[str, str] = {
    "rsv": "reserved",
    "open": "available",
    "available": "available",
    "reserved": "reserved",
    "sold": "sold",
}

_WS_RE = re.compile(r"\s+")
_SEP_RE = re.compile(r"[_-]")


def _text(v: Any) -> str:
    return "" if v is None else str(v)


def normalize_category_key(v: Any) -> str:
    """Lowercase, treat ``_``/``-``/NBSP as spaces, collapse whitespace."""
    s = _text(v).lower().replace("\u00a0", " ")
    s = _SEP_RE.sub(" ", s)
    return _WS_RE.sub(" ", s).strip()


def normalize_status_key(v: Any) -> str:
    return _text(v).lower().replace("_", " ").strip()


def status_matches(a: Any, b: Any) -> bool:
    """Compare two statuses treating ``available`` and ``open`` as equal."""
    def _fold(x: Any) -> str:
        k = normalize_status_key(x)
        return "open" if k == "available" else k
    return _fold(a) == _fold(b)


def to_title_case(s: Any) -> str:
    # 空白区切りの各語の先頭のみ大文字化 (残りはそのまま)
    return " ".join(w[0].upper() + w[1:] if w else "" for w in _text(s).split(" "))


def format_category_label(v: Any) -> str:
    key = normalize_category_key(v)
    return CATEGORY_LABELS.get(key) or to_title_case(key)


def format_status_label(v: Any) -> str:
    key = normalize_status_key(v)
    return STATUS_LABELS.get(key) or to_title_case(key)


def canonical_category(raw: Any) -> str:
    """Map an explicit category cell to its canonical label.

    Unknown values pass through trimmed and unchanged so that project-specific
    categories (e.g. "Premium") survive the import.
    """
    trimmed = _text(raw).strip()
    return _IMPORT_CATEGORY_ALIASES.get(trimmed.lower(), trimmed)


def to_store_category(v: Any) -> str:
    """Category as stored in the ``lots.category`` column (underscore form)."""
    key = _text(v).strip().lower()
    label = _IMPORT_CATEGORY_ALIASES.get(key)
    if label is not None:
        return label.lower().replace(" ", "_")
    # best-effort fallback
    return _WS_RE.sub("_", key)


def to_store_status(v: Any) -> str | None:
    """Status as stored in the ``lots.status`` column. Empty -> None."""
    key = _text(v).strip().lower()
    return _STORE_STATUS.get(key, key or None)


def format_currency(v: Any) -> str:
    """Format an amount as Philippine pesos, e.g. ``₱1,234.50``."""
    try:
        amount = float(v)
    except (TypeError, ValueError):
        return ""
    sign = "-" if amount < 0 else ""
    return f"{sign}₱{abs(amount):,.2f}"


def format_date(v: Any) -> str:
    """Long date, e.g. ``January 5, 2024``. Unparsable input -> ``""``."""
    if v is None or v == "":
        return ""
    ts = pd.to_datetime(v, errors="coerce")
    if pd.isna(ts):
        return ""
    return f"{ts:%B} {ts.day}, {ts.year}"
