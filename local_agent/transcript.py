from __future__ import annotations

from typing import List


class TranscriptAccumulator:
    """
    Buffers final recognition fragments between turn boundaries.

    Fragments are joined with a single space on drain, so "hello" then
    "world" becomes "hello world".
    """

    separator = " "

    def __init__(self):
        self._fragments: List[str] = []

    def __bool__(self) -> bool:
        return bool(self._fragments)

    @property
    def text(self) -> str:
        return self.separator.join(self._fragments)

    def append(self, fragment: str) -> None:
        fragment = (fragment or "").strip()
        if fragment:
            self._fragments.append(fragment)

    def drain(self) -> str:
        text = self.text
        self._fragments = []
        return text

    def clear(self) -> None:
        self._fragments = []
