"""dmi-toolbox — tools for editing BYOND DMI sprite sheets."""

__version__ = "0.1.0"
