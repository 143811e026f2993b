"""BaseTool ABC — the contract every tool in the toolbox implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from dmi_toolbox.core.events import EventBus
from dmi_toolbox.core.exceptions import ValidationError


@dataclass
class ToolParameter:
    """One entry of a tool's parameter schema."""

    name: str
    label: str
    type: type
    default: Any = None
    required: bool = False
    help: str = ""


class BaseTool(ABC):
    """Template Method base for the icon tools.

    A tool declares its parameters and the data it accepts or returns, and
    implements ``_do_execute``; ``run()`` validates first, then executes.
    """

    name: str
    display_name: str
    description: str
    category: str = "General"

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self.event_bus = event_bus or EventBus()

    @abstractmethod
    def define_parameters(self) -> list[ToolParameter]:
        """Return the parameters this tool accepts."""
        ...

    @abstractmethod
    def input_types(self) -> list[type]:
        """Return the data types ``run()`` accepts as ``input_data``."""
        ...

    @abstractmethod
    def output_types(self) -> list[type]:
        """Return the data types ``run()`` returns."""
        ...

    def run(self, params: dict[str, Any], input_data: Any = None) -> Any:
        """Validate *params*, then execute the tool — do NOT override.

        Args:
            params: Parameter values keyed by parameter name.
            input_data: Optional value of one of ``input_types()``.

        Returns:
            The result produced by ``_do_execute``.
        """
        self.validate(params)
        return self._do_execute(params, input_data)

    def validate(self, params: dict[str, Any]) -> None:
        """Reject *params* that miss a required parameter.

        Subclasses extend this with their own rules.

        Raises:
            ValidationError: If a required parameter is missing.
        """
        for param in self.define_parameters():
            if param.required and params.get(param.name) is None:
                msg = f"Parameter '{param.name}' is required"
                raise ValidationError(msg)

    @abstractmethod
    def _do_execute(self, params: dict[str, Any], input_data: Any) -> Any:
        """Core logic — MUST override.  No UI code."""
        ...
