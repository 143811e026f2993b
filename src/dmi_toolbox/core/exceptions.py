"""Exception hierarchy for the dmi-toolbox framework."""


class ToolboxError(Exception):
    """Base exception for all dmi-toolbox errors."""


class ToolError(ToolboxError):
    """Raised when a tool encounters an error during execution."""


class CodecError(ToolError):
    """Raised when a DMI file cannot be decoded or encoded."""


class ValidationError(ToolboxError):
    """Raised when parameter validation fails."""
