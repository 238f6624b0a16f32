"""modshrink - repackage game-mod bundles into smaller archives."""

__version__ = "1.0.0"
