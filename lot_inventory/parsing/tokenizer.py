from __future__ import annotations

from .delimiter import detect_delimiter

"""Quote-aware CSV tokenizer.

Differs from ``csv.reader`` in two places that existing inventories
depend on:

- ``\\r`` is dropped everywhere, including inside quoted fields.
  TODO: decide whether a literal CR inside quoted cells (CRLF or classic
  Mac exports) should be kept, then drop this special case.
- An unterminated quote is not an error; the rest of the input is read as
  quoted content.
"""

__all__ = [
    "parse_csv",
    "decode_upload",
]

_BOM = "\ufeff"


def parse_csv(text: str, delimiter: str | None = None) -> list[list[str]]:
    """Split raw CSV text into rows of string cells.

    Parameters
    ----------
    text: アップロードされた CSV 本文
    delimiter: 区切り文字 (None なら detect_delimiter で自動判定)

    A trailing newline does not produce an extra empty row, and a missing
    final newline does not lose the last row.
    """
    delim = delimiter if delimiter is not None else detect_delimiter(text)
    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        if ch == "\r":
            pass
        elif in_quotes:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    field.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                field.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == delim:
            row.append("".join(field))
            field = []
        elif ch == "\n":
            row.append("".join(field))
            field = []
            rows.append(row)
            row = []
        else:
            field.append(ch)
        i += 1

    if field or row:
        row.append("".join(field))
        rows.append(row)
    return rows


def decode_upload(data: bytes) -> str:
    """Decode uploaded bytes: UTF-8 (BOM stripped), falling back to cp1252."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        text = data.decode("cp1252", errors="replace")
    return text[1:] if text.startswith(_BOM) else text
