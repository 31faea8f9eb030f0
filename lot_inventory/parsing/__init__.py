"""CSV / sheet parsing: delimiter sniffing, tokenizing, header location and
row normalization."""

from .delimiter import detect_delimiter
from .header import FIELD_ALIASES, HeaderMap, find_header_row_index, resolve_header_map
from .normalizer import NormalizedRows, normalize_row, normalize_rows
from .tokenizer import decode_upload, parse_csv

__all__ = [
    "detect_delimiter",
    "parse_csv",
    "decode_upload",
    "FIELD_ALIASES",
    "HeaderMap",
    "find_header_row_index",
    "resolve_header_map",
    "NormalizedRows",
    "normalize_row",
    "normalize_rows",
]
