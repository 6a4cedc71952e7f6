from .orders import Order
from .inventory import InventoryState, InventoryLedgerEntry
from .settings import AppSettings

__all__ = [
    'Order',
    'InventoryState', 'InventoryLedgerEntry',
    'AppSettings',
]
