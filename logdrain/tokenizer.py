"""
Splitting of raw log lines into tokens.
"""

import re
from functools import lru_cache
from typing import List, Pattern


@lru_cache(maxsize=32)
def _splitter(additional_delimiters: str) -> Pattern:
    if not additional_delimiters:
        return re.compile(r'\s+')
    return re.compile(r'[\s' + re.escape(additional_delimiters) + r']+')


def tokenize(line: str, additional_delimiters: str = "") -> List[str]:
    """
    Split a log line on whitespace and on every character of
    ``additional_delimiters``, dropping empty fragments.
    """
    if not isinstance(line, str):
        raise TypeError(f"log line must be a str, got {type(line).__name__}")
    if not isinstance(additional_delimiters, str):
        raise TypeError("additional_delimiters must be a str")

    return [token for token in _splitter(additional_delimiters).split(line) if token]
