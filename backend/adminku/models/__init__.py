from .catalog import (
    Unit,
    Category,
    Brand,
    Product,
    ProductImage,
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_INACTIVE,
    PRODUCT_STATUS_DISCONTINUED,
    PRODUCT_STATUSES,
)
from .stock import StockTransaction, TX_ADD, TX_REMOVE, TX_ADJUST, TRANSACTION_TYPES
from .settings import ConfigEntry

__all__ = [
    'Unit', 'Category', 'Brand', 'Product', 'ProductImage',
    'PRODUCT_STATUS_ACTIVE', 'PRODUCT_STATUS_INACTIVE', 'PRODUCT_STATUS_DISCONTINUED', 'PRODUCT_STATUSES',
    'StockTransaction', 'TX_ADD', 'TX_REMOVE', 'TX_ADJUST', 'TRANSACTION_TYPES',
    'ConfigEntry',
]
