"""
Tool Registry.

Holds the tools available to the agent, built once at startup, and routes
execution by name. Also owns the trigger heuristics that decide whether a
tool applies to an incoming message.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

from pydantic import ValidationError as ArgsValidationError

from ..domain.entities import Message, ToolDefinition, ToolInvocation
from ..exceptions import ToolError
from .base import Tool
from .trigger import ToolTrigger

logger = logging.getLogger(__name__)


def _format_validation_error(tool_name: str, error: ArgsValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg', 'invalid')}")
    return f"Invalid arguments for '{tool_name}': " + "; ".join(problems)


class ToolRegistry:
    """Registry of executable tools.

    Usage:
        registry = ToolRegistry(triggers=[FileReferenceTrigger("./documents")])
        registry.register(FileSummarizerTool())

        decision = registry.decide(history, incoming)
        if decision:
            invocation = await registry.execute(*decision)

    Execution never raises for tool-level problems: unknown tools, invalid
    arguments, execution errors and timeouts all come back as a
    ToolInvocation with error set.
    """

    def __init__(
        self,
        triggers: Optional[Sequence[ToolTrigger]] = None,
        default_timeout: float = 30.0,
    ):
        """Initialize the tool registry.

        Args:
            triggers: Heuristics consulted by decide(), in priority order
            default_timeout: Execution bound for tools without their own
        """
        self._tools: dict[str, Tool] = {}
        self.triggers: list[ToolTrigger] = list(triggers or [])
        self.default_timeout = default_timeout

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ToolError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ToolError(
                tool.name,
                f"Tool '{tool.name}' is already registered",
                recoverable=False,
            )
        self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """Get names of all registered tools."""
        return list(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        """Get definitions of all registered tools."""
        return [tool.definition() for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def decide(
        self, history: Sequence[Message], incoming: Message
    ) -> Optional[tuple[str, dict[str, Any]]]:
        """Decide whether a tool applies to the incoming message.

        The first trigger that fires for a registered tool wins; at most one
        tool runs per exchange.

        Args:
            history: Working history preceding the message
            incoming: Latest user message

        Returns:
            (tool_name, args) or None
        """
        for trigger in self.triggers:
            decision = trigger.match(history, incoming)
            if decision is None:
                continue
            tool_name, args = decision
            if tool_name not in self._tools:
                logger.warning(f"Trigger selected unregistered tool '{tool_name}'")
                continue
            return tool_name, args
        return None

    def validate(self, name: str, args: dict[str, Any]) -> Any:
        """Validate arguments for a tool.

        Returns:
            The tool's parsed argument model

        Raises:
            ToolError: If the tool is unknown or the arguments are invalid
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolError(name, f"Tool '{name}' not found in registry", recoverable=False)
        try:
            return tool.parse_args(args)
        except ArgsValidationError as e:
            raise ToolError(name, _format_validation_error(name, e), cause=e)

    async def execute(self, name: str, args: dict[str, Any]) -> ToolInvocation:
        """Validate and execute a tool, recording the outcome.

        Args:
            name: Tool name
            args: Raw arguments

        Returns:
            ToolInvocation with result or error populated
        """
        invocation = ToolInvocation(tool=name, args=dict(args))
        start = time.monotonic()

        try:
            parsed = self.validate(name, args)
            tool = self._tools[name]
            timeout = tool.timeout_seconds or self.default_timeout
            output = await asyncio.wait_for(tool.execute(parsed), timeout=timeout)

            if output.success:
                result = output.result
                invocation.result = result if isinstance(result, str) else str(result)
            else:
                invocation.error = output.error_message or "Tool reported failure"

        except ToolError as e:
            invocation.error = e.message
        except asyncio.TimeoutError:
            invocation.error = f"Tool '{name}' timed out after {timeout}s"
        except Exception as e:
            logger.exception(f"Tool '{name}' raised unexpectedly: {e}")
            invocation.error = f"Tool execution failed: {e}"

        invocation.duration_ms = int((time.monotonic() - start) * 1000)

        if invocation.error:
            logger.warning(f"Tool '{name}' failed in {invocation.duration_ms}ms: {invocation.error}")
        else:
            logger.info(f"Tool '{name}' completed in {invocation.duration_ms}ms")

        return invocation
