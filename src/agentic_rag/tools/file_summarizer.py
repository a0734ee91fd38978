"""
File summarizer tool.

Reads a local text file and reports basic statistics, a rough structure
count for Python and Rust sources, and a short preview.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..domain.entities import ToolOutput
from ..exceptions import ToolError
from .base import Tool

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_ALLOWED_EXTENSIONS = (
    "txt",
    "md",
    "rs",
    "py",
    "js",
    "ts",
    "json",
    "yaml",
    "yml",
    "toml",
    "cfg",
    "conf",
)
PREVIEW_LINES = 5


class FileSummarizerArgs(BaseModel):
    """Arguments for the file summarizer."""

    model_config = ConfigDict(extra="forbid")

    file_path: str = Field(
        ...,
        min_length=1,
        description="Path to the file to summarize",
    )


class FileSummarizerTool(Tool):
    """Summarizes the content of a text file.

    Usage:
        tool = FileSummarizerTool(max_file_size=512 * 1024)
        output = await tool.execute(FileSummarizerArgs(file_path="notes.txt"))
    """

    name = "file_summarizer"
    description = (
        "Summarizes the content of a text file, providing basic statistics "
        "and a preview"
    )
    args_model = FileSummarizerArgs

    def __init__(
        self,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        allowed_extensions: Optional[tuple[str, ...]] = None,
        timeout_seconds: int = 30,
    ):
        self.max_file_size = max_file_size
        self.allowed_extensions = tuple(
            ext.lower() for ext in (allowed_extensions or DEFAULT_ALLOWED_EXTENSIONS)
        )
        self.timeout_seconds = timeout_seconds

    def is_allowed_file(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path)
        return ext[1:].lower() in self.allowed_extensions if ext else False

    def _read_file(self, file_path: str) -> str:
        if not os.path.exists(file_path):
            raise ToolError(self.name, f"File not found: {file_path}", recoverable=False)

        if not self.is_allowed_file(file_path):
            raise ToolError(self.name, f"File type not allowed: {file_path}", recoverable=False)

        try:
            size = os.path.getsize(file_path)
        except OSError as e:
            raise ToolError(self.name, f"Failed to read file metadata: {e}", cause=e)

        if size > self.max_file_size:
            raise ToolError(
                self.name,
                f"File too large: {size} bytes (max: {self.max_file_size} bytes)",
                recoverable=False,
            )

        try:
            with open(file_path, encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ToolError(self.name, f"Failed to read file: {e}", cause=e)

    def summarize(self, content: str, file_path: str) -> str:
        """Build the summary text for a file's content."""
        lines = content.splitlines()
        structure: list[str] = []

        if file_path.endswith(".rs"):
            counts = [
                ("Functions", content.count("fn ")),
                ("Structs", content.count("struct ")),
                ("Implementations", content.count("impl ")),
            ]
        elif file_path.endswith(".py"):
            counts = [
                ("Functions", content.count("def ")),
                ("Classes", content.count("class ")),
                ("Imports", content.count("import ") + content.count("from ")),
            ]
        else:
            counts = []

        for label, count in counts:
            if count > 0:
                structure.append(f"{label}: {count}")

        return (
            f"File: {file_path}\n"
            f"Size: {len(lines)} lines, {len(content.split())} words, "
            f"{len(content)} characters\n"
            f"Structure: {', '.join(structure) if structure else 'Plain text'}\n"
            f"\n"
            f"Preview (first {PREVIEW_LINES} lines):\n"
            + "\n".join(lines[:PREVIEW_LINES])
        )

    async def execute(self, args: FileSummarizerArgs) -> ToolOutput:
        content = await asyncio.to_thread(self._read_file, args.file_path)
        logger.debug(f"Summarizing {args.file_path} ({len(content)} chars)")
        return ToolOutput.ok(self.summarize(content, args.file_path))
