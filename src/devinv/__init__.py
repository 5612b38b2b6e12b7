"""Local device inventory manager."""

__version__ = "0.1.0"

from .app import InventoryApp

__all__ = ["InventoryApp", "__version__"]
