"""
Tests for the tool layer: file summarizer, trigger heuristic and registry.
"""

import asyncio
import os

import pytest
from pydantic import BaseModel

from agentic_rag.domain.entities import Message, MessageRole, ToolOutput
from agentic_rag.exceptions import ToolError
from agentic_rag.tools import (
    FileReferenceTrigger,
    FileSummarizerArgs,
    FileSummarizerTool,
    Tool,
    ToolRegistry,
)


class SlowArgs(BaseModel):
    delay: float = 1.0


class SlowTool(Tool):
    name = "slow"
    description = "Sleeps"
    args_model = SlowArgs
    timeout_seconds = 0.05

    async def execute(self, args: SlowArgs) -> ToolOutput:
        await asyncio.sleep(args.delay)
        return ToolOutput.ok("done")


class BrokenTool(Tool):
    name = "broken"
    description = "Always raises"
    args_model = SlowArgs

    async def execute(self, args: SlowArgs) -> ToolOutput:
        raise RuntimeError("kaboom")


# ============================================
# File Summarizer
# ============================================


class TestFileSummarizer:
    """Tests for FileSummarizerTool."""

    @pytest.mark.asyncio
    async def test_summarizes_text_file(self, tmp_path):
        """Plain text files report counts and a preview."""
        path = tmp_path / "notes.txt"
        path.write_text("line one\nline two\nline three\n")
        tool = FileSummarizerTool()

        output = await tool.execute(FileSummarizerArgs(file_path=str(path)))

        assert output.success
        assert f"File: {path}" in output.result
        assert "Size: 3 lines, 6 words" in output.result
        assert "Structure: Plain text" in output.result
        assert "line one" in output.result

    @pytest.mark.asyncio
    async def test_python_structure_counts(self, tmp_path):
        """Python sources count functions, classes and imports."""
        path = tmp_path / "mod.py"
        path.write_text("import os\n\nclass A:\n    def f(self):\n        pass\n")
        output = await FileSummarizerTool().execute(FileSummarizerArgs(file_path=str(path)))
        assert "Functions: 1" in output.result
        assert "Classes: 1" in output.result
        assert "Imports: 1" in output.result

    @pytest.mark.asyncio
    async def test_preview_is_limited_to_five_lines(self, tmp_path):
        """Only the first five lines are previewed."""
        path = tmp_path / "long.txt"
        path.write_text("\n".join(f"row {i}" for i in range(10)))
        output = await FileSummarizerTool().execute(FileSummarizerArgs(file_path=str(path)))
        assert "row 4" in output.result
        assert "row 5" not in output.result

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        """A missing file is a ToolError naming the path."""
        path = os.path.join(str(tmp_path), "missing.txt")
        with pytest.raises(ToolError, match="File not found"):
            await FileSummarizerTool().execute(FileSummarizerArgs(file_path=path))

    @pytest.mark.asyncio
    async def test_disallowed_extension_raises(self, tmp_path):
        """Extensions outside the allow list are rejected."""
        path = tmp_path / "image.png"
        path.write_bytes(b"\x89PNG")
        with pytest.raises(ToolError, match="File type not allowed"):
            await FileSummarizerTool().execute(FileSummarizerArgs(file_path=str(path)))

    @pytest.mark.asyncio
    async def test_oversized_file_raises(self, tmp_path):
        """Files above max_file_size are rejected."""
        path = tmp_path / "big.txt"
        path.write_text("x" * 100)
        tool = FileSummarizerTool(max_file_size=10)
        with pytest.raises(ToolError, match="File too large"):
            await tool.execute(FileSummarizerArgs(file_path=str(path)))

    def test_input_schema_requires_file_path(self):
        """The declared schema comes from the argument model."""
        schema = FileSummarizerTool().input_schema
        assert schema["required"] == ["file_path"]
        assert "file_path" in schema["properties"]


# ============================================
# Trigger
# ============================================


class TestFileReferenceTrigger:
    """Tests for the file reference heuristic."""

    def test_no_file_reference(self):
        """Ordinary questions do not fire."""
        trigger = FileReferenceTrigger("/docs")
        assert trigger.match([], Message.user("What is the remote work policy?")) is None

    def test_relative_path_resolves_against_document_dir(self):
        """Relative paths are joined to the document directory."""
        trigger = FileReferenceTrigger("/docs")
        decision = trigger.match([], Message.user("Please summarize notes.txt for me"))
        assert decision == ("file_summarizer", {"file_path": os.path.join("/docs", "notes.txt")})

    def test_file_prefix_and_punctuation_are_stripped(self):
        """'file:' prefixes and trailing punctuation are removed."""
        trigger = FileReferenceTrigger("/docs")
        assert trigger.find_file_reference("summarize file:report.txt.") == "report.txt"
        assert trigger.find_file_reference('look at "main.rs", please') == "main.rs"

    def test_absolute_path_is_kept(self):
        """Absolute paths are used as given."""
        trigger = FileReferenceTrigger("/docs")
        _, args = trigger.match([], Message.user("summarize /tmp/a.py"))
        assert args["file_path"] == "/tmp/a.py"

    def test_first_reference_wins(self):
        """Compound requests use the first file mentioned."""
        trigger = FileReferenceTrigger("/docs")
        assert trigger.find_file_reference("compare a.txt and b.txt") == "a.txt"


# ============================================
# Registry
# ============================================


class TestToolRegistry:
    """Tests for registration, decision and execution."""

    def test_duplicate_registration_rejected(self):
        """Registering the same name twice raises."""
        registry = ToolRegistry()
        registry.register(FileSummarizerTool())
        with pytest.raises(ToolError, match="already registered"):
            registry.register(FileSummarizerTool())

    def test_list_tools(self):
        registry = ToolRegistry()
        assert registry.list_tools() == []

        registry.register(FileSummarizerTool())
        assert registry.list_tools() == ["file_summarizer"]

    def test_definitions_expose_schema(self):
        """Definitions carry the argument schema."""
        registry = ToolRegistry()
        registry.register(FileSummarizerTool())
        (definition,) = registry.definitions()
        assert definition.name == "file_summarizer"
        assert "file_path" in definition.parameters["properties"]

    def test_decide_ignores_unregistered_tools(self):
        """A trigger naming an unknown tool does not fire."""
        registry = ToolRegistry(triggers=[FileReferenceTrigger("/docs")])
        assert registry.decide([], Message.user("summarize notes.txt")) is None

    def test_decide_returns_single_decision(self, tool_registry):
        """At most one tool is selected per message."""
        decision = tool_registry.decide([], Message.user("summarize notes.txt and b.txt"))
        assert decision[0] == "file_summarizer"
        assert decision[1]["file_path"].endswith("notes.txt")

    @pytest.mark.asyncio
    async def test_execute_success(self, tool_registry, document_dir):
        """Successful runs carry the result and a duration."""
        invocation = await tool_registry.execute(
            "file_summarizer", {"file_path": os.path.join(document_dir, "notes.txt")}
        )
        assert invocation.succeeded
        assert "Remote work" in invocation.result
        assert invocation.duration_ms >= 0
        message = invocation.to_message()
        assert message.role == MessageRole.TOOL
        assert message.name == "file_summarizer"

    @pytest.mark.asyncio
    async def test_execute_missing_file_is_recorded(self, tool_registry, document_dir):
        """Tool failures come back as an invocation with error set."""
        path = os.path.join(document_dir, "missing.txt")
        invocation = await tool_registry.execute("file_summarizer", {"file_path": path})

        assert not invocation.succeeded
        assert invocation.error == f"File not found: {path}"
        assert invocation.to_message().content == f"Error: File not found: {path}"
        assert invocation.to_dict()["error"] == invocation.error

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self, tool_registry):
        """Unknown tools are reported, not raised."""
        invocation = await tool_registry.execute("nope", {})
        assert invocation.error == "Tool 'nope' not found in registry"

    @pytest.mark.asyncio
    async def test_execute_invalid_arguments(self, tool_registry):
        """Schema violations are reported before execution."""
        invocation = await tool_registry.execute("file_summarizer", {"path": "x.txt"})
        assert invocation.error.startswith("Invalid arguments for 'file_summarizer'")

    @pytest.mark.asyncio
    async def test_execute_timeout(self):
        """Tools exceeding their timeout are cut off."""
        registry = ToolRegistry()
        registry.register(SlowTool())
        invocation = await registry.execute("slow", {"delay": 1.0})
        assert invocation.error == "Tool 'slow' timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_execute_unexpected_exception(self):
        """Unexpected exceptions are contained."""
        registry = ToolRegistry()
        registry.register(BrokenTool())
        invocation = await registry.execute("broken", {})
        assert invocation.error == "Tool execution failed: kaboom"
