"""AlphaMaskTool — BaseTool wrapper for masking DMI icon states."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dmi_toolbox.core.base_tool import BaseTool, ToolParameter
from dmi_toolbox.core.datatypes import AlphaMaskResult, PathList
from dmi_toolbox.core.exceptions import ValidationError
from dmi_toolbox.tools.alpha_mask.logic import (
    apply_alpha_mask,
    parse_state_names,
    probe_dmi,
    validate_alpha_mask_params,
)


class AlphaMaskTool(BaseTool):
    """Recolour DMI states with a mask image, keeping each frame's silhouette.

    The masked states are written to a new DMI file, or appended after the
    states of the output file when it already exists.
    """

    name = "alpha_mask"
    display_name = "Alpha Mask"
    description = "Mask DMI icon states with an image through their alpha channel"
    category = "Icon"

    def define_parameters(self) -> list[ToolParameter]:
        """Return the parameter schema for alpha masking."""
        return [
            ToolParameter(
                name="input",
                label="Input DMI",
                type=Path,
                help="DMI file whose states are masked.",
            ),
            ToolParameter(
                name="states",
                label="States",
                type=str,
                default="",
                help="Comma-separated state names, e.g. 'foo,bar'. Empty masks every state.",
            ),
            ToolParameter(
                name="mask",
                label="Mask image",
                type=Path,
                required=True,
                help="Image whose colours are painted through each frame's alpha.",
            ),
            ToolParameter(
                name="output",
                label="Output DMI",
                type=Path,
                required=True,
                help="DMI file to write. If it already exists, the states are appended to it.",
            ),
            ToolParameter(
                name="dry_run",
                label="Dry run",
                type=bool,
                default=False,
                help="Show the input's states without writing anything.",
            ),
        ]

    def input_types(self) -> list[type]:
        """Accept a ``PathList`` whose first path is the input DMI."""
        return [PathList]

    def output_types(self) -> list[type]:
        """Produce an ``AlphaMaskResult``."""
        return [AlphaMaskResult]

    def validate(self, params: dict[str, Any]) -> None:
        """Validate parameters with alpha-mask-specific rules.

        Path checks are skipped when ``input`` is ``None`` because the input
        may arrive later as ``input_data``.  A dry run only needs ``input``.

        Args:
            params: Parameter dict to validate.

        Raises:
            ValidationError: If parameters are invalid.
        """
        if params.get("dry_run", False):
            raw_input = params.get("input")
            if raw_input is not None and not Path(raw_input).is_file():
                msg = f"Input DMI file does not exist: '{raw_input}'"
                raise ValidationError(msg)
            return

        super().validate(params)

        states = params.get("states")
        if states is not None and not isinstance(states, str):
            msg = f"Parameter 'states' must be a comma-separated string, got {type(states).__name__}"
            raise ValidationError(msg)

        raw_input = params.get("input")
        if raw_input is None:
            return

        validate_alpha_mask_params(
            input_path=Path(raw_input),
            mask_path=Path(params["mask"]),
            output_path=Path(params["output"]),
        )

    def _do_execute(self, params: dict[str, Any], input_data: Any) -> AlphaMaskResult:
        """Run the masking logic, or report the input's states on a dry run.

        Args:
            params: Validated parameter dictionary.
            input_data: Optional ``PathList`` from a preceding stage.

        Returns:
            An ``AlphaMaskResult``; empty for a dry run.

        Raises:
            ValidationError: If the input cannot be resolved.
        """
        if input_data is not None and isinstance(input_data, PathList):
            if input_data.count == 0:
                msg = "Empty PathList received as input"
                raise ValidationError(msg)
            input_path = input_data.paths[0]
        else:
            raw_input = params.get("input")
            if raw_input is None:
                msg = "No input DMI file provided"
                raise ValidationError(msg)
            input_path = Path(raw_input)

        if params.get("dry_run", False):
            info = probe_dmi(input_path)
            listing = ", ".join(f"{s['name']} ({s['dirs']}d/{s['frames']}f)" for s in info["states"])
            self.event_bus.emit(
                "log",
                tool="alpha_mask",
                message=(
                    f"Icon: {input_path.name}\n"
                    f"Version: {info['version']}\n"
                    f"Size: {info['width']}x{info['height']}\n"
                    f"States ({info['state_count']}): {listing}"
                ),
            )
            return AlphaMaskResult(output_path=input_path)

        return apply_alpha_mask(
            input_path,
            Path(params["mask"]),
            Path(params["output"]),
            states=parse_state_names(params.get("states", "")),
            event_bus=self.event_bus,
        )
