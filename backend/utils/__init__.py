from .parsing import (
    extract_json_block,
    extract_greedy_json,
    strip_code_fences,
    split_sentences,
    parse_confidence,
)
from .retry import async_retry
from .validation import InputValidator

__all__ = [
    "extract_json_block",
    "extract_greedy_json",
    "strip_code_fences",
    "split_sentences",
    "parse_confidence",
    "async_retry",
    "InputValidator",
]
