"""Decoder for ``eval(function(p,a,c,k,e,d){...})`` packed player scripts."""
from __future__ import annotations

import re

_PACKED_SCRIPT = re.compile(
    r"eval\(function\(p,a,c,k,e,[dr]\)\{.*?\}\(\s*'(?P<payload>.*?)',\s*(?P<radix>\d+),\s*"
    r"(?P<count>\d+),\s*'(?P<symbols>.*?)'\.split\('\|'\)",
    re.DOTALL,
)
_WORD = re.compile(r"\b\w+\b")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def is_packed(text: str) -> bool:
    return _PACKED_SCRIPT.search(text) is not None


def _word_index(word: str, radix: int) -> int:
    if radix <= 36:
        return int(word, radix)
    value = 0
    for char in word:
        digit = _DIGITS.index(char)
        if digit >= radix:
            raise ValueError(word)
        value = value * radix + digit
    return value


def unpack(text: str) -> str:
    """Return the decoded script, or ``text`` unchanged when nothing is packed."""

    match = _PACKED_SCRIPT.search(text)
    if match is None:
        return text

    radix = int(match.group("radix"))
    count = int(match.group("count"))
    symbols = match.group("symbols").split("|")
    symbols.extend([""] * (count - len(symbols)))

    def substitute(word_match: re.Match[str]) -> str:
        word = word_match.group(0)
        try:
            index = _word_index(word, radix)
        except ValueError:
            return word
        if index < len(symbols) and symbols[index]:
            return symbols[index]
        return word

    return _WORD.sub(substitute, match.group("payload"))
