"""Tool registry, triggers and built-in tools."""

from .base import Tool
from .file_summarizer import FileSummarizerArgs, FileSummarizerTool
from .registry import ToolRegistry
from .trigger import FileReferenceTrigger, ToolTrigger

__all__ = [
    "FileReferenceTrigger",
    "FileSummarizerArgs",
    "FileSummarizerTool",
    "Tool",
    "ToolRegistry",
    "ToolTrigger",
]
