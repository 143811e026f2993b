"""Framework shared by every tool: base class, events, config, errors."""
