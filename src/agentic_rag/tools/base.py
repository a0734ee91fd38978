"""
Tool capability interface.

A tool is a name, a description, an argument model and an async execute
method. Arguments are declared as a pydantic model; its JSON Schema is the
tool's input schema and validation happens before execute is called.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel

from ..domain.entities import ToolDefinition, ToolOutput


class Tool(ABC):
    """Base class for executable tools.

    Subclasses set name, description and args_model, and implement execute.
    execute may return a failed ToolOutput or raise ToolError; the registry
    treats both the same way.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    args_model: ClassVar[type[BaseModel]]
    timeout_seconds: int = 30

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's arguments."""
        return self.args_model.model_json_schema()

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.input_schema,
            timeout_seconds=self.timeout_seconds,
        )

    def parse_args(self, args: dict[str, Any]) -> BaseModel:
        """Validate raw arguments against the tool's model.

        Raises:
            pydantic.ValidationError: If arguments are malformed
        """
        return self.args_model.model_validate(args)

    @abstractmethod
    async def execute(self, args: BaseModel) -> ToolOutput:
        """Run the tool with validated arguments.

        Args:
            args: Instance of args_model

        Returns:
            ToolOutput describing the outcome

        Raises:
            ToolError: On execution failure
        """
        pass
