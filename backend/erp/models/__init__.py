from .branches import Branch
from .auth import User
from .customers import Customer, Supplier
from .inventory import Product, UnitConversion, Stock, StockAdjustment
from .sales import Sale, SaleItem
from .purchases import Purchase, PurchaseItem
from .credit import CreditAccount, CreditPayment
from .cash import CashMovement
from .documents import Transfer, TransferItem

__all__ = [
    'Branch', 'User',
    'Customer', 'Supplier',
    'Product', 'UnitConversion', 'Stock', 'StockAdjustment',
    'Sale', 'SaleItem',
    'Purchase', 'PurchaseItem',
    'CreditAccount', 'CreditPayment',
    'CashMovement',
    'Transfer', 'TransferItem',
]
