from .catalog import Product, ProductVariant
from .inventory import InventoryUnit, StockMovement, PurchaseOrder, PurchaseOrderLine
from .sales import SalesOrder, SalesOrderLine
from .customers import Customer, CustomerReturnHistory
from .returns import ReturnRequest
from .documents import DocumentSequence

__all__ = [
    'Product', 'ProductVariant',
    'InventoryUnit', 'StockMovement', 'PurchaseOrder', 'PurchaseOrderLine',
    'SalesOrder', 'SalesOrderLine',
    'Customer', 'CustomerReturnHistory',
    'ReturnRequest',
    'DocumentSequence',
]
