"""Cross-subscription virtual network peering audit."""

__version__ = "0.1.0"
