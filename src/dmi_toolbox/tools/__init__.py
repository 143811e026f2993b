"""Tools shipped with dmi-toolbox, one sub-package per tool."""
