"""Alpha Mask tool — recolours DMI icon states through their alpha channel."""

from dmi_toolbox.tools.alpha_mask.tool import AlphaMaskTool

__all__ = ["AlphaMaskTool"]
