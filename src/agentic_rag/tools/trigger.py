"""
Tool trigger heuristics.

A trigger is a plain predicate over the incoming user text: no model call,
no side effects. At most one tool fires per exchange.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from ..domain.entities import Message

# Substrings that make a message worth scanning for a file reference
FILE_HINTS = ("file:", ".txt", ".rs", ".py")
FILE_SUFFIXES = (".txt", ".rs", ".py")
_STRIP_CHARS = "\"'`()[]{}<>,;:!?"


class ToolTrigger(ABC):
    """Decides whether a tool applies to the incoming message."""

    @abstractmethod
    def match(
        self, history: Sequence[Message], incoming: Message
    ) -> Optional[tuple[str, dict[str, Any]]]:
        """Return (tool_name, args) if the trigger fires, else None."""
        pass


class FileReferenceTrigger(ToolTrigger):
    """Fires the file summarizer when the user mentions a source or text file.

    The first word ending in .txt, .rs or .py wins. Relative paths are
    resolved against the document directory.

    Example:
        trigger = FileReferenceTrigger("./documents")
        trigger.match([], Message.user("summarize file: notes.txt"))
        # -> ("file_summarizer", {"file_path": "./documents/notes.txt"})
    """

    def __init__(self, document_dir: str, tool_name: str = "file_summarizer"):
        self.document_dir = document_dir
        self.tool_name = tool_name

    @staticmethod
    def _clean(word: str) -> str:
        if word.lower().startswith("file:"):
            word = word[len("file:"):]
        word = word.strip(_STRIP_CHARS)
        # Trailing sentence punctuation ("see notes.txt.")
        while word.endswith(".") and not word.endswith(FILE_SUFFIXES):
            word = word[:-1]
        return word

    def find_file_reference(self, text: str) -> Optional[str]:
        """Return the first file path mentioned in the text, if any."""
        if not any(hint in text for hint in FILE_HINTS):
            return None

        for raw in text.split():
            word = self._clean(raw)
            if "." in word and word.endswith(FILE_SUFFIXES):
                return word
        return None

    def resolve(self, path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(self.document_dir, path)

    def match(
        self, history: Sequence[Message], incoming: Message
    ) -> Optional[tuple[str, dict[str, Any]]]:
        path = self.find_file_reference(incoming.content)
        if path is None:
            return None
        return self.tool_name, {"file_path": self.resolve(path)}
