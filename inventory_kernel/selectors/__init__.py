"""Read-only selectors over inventory state."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.inventory_selector import InventorySelector

__all__ = ["BaseSelector", "InventorySelector"]
