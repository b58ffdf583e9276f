from .catalog import Branch, Product
from .auth import Role, User, PermissionOverride, HiddenEntry, SystemSetting
from .security import SecurityEvent
from .archive import ArchiveRecord
from .sales import Invoice, InvoiceLine, ReturnRecord, ReturnLine
from .purchasing import Supplier, PurchaseRecord, PurchaseLine, SupplierPayment, PaymentAllocation
from .purchasing import PurchaseReturnRecord, PurchaseReturnLine
from .treasury import Shift, TreasuryLog, Expense

__all__ = [
    'Branch', 'Product',
    'Role', 'User', 'PermissionOverride', 'HiddenEntry', 'SystemSetting',
    'SecurityEvent', 'ArchiveRecord',
    'Invoice', 'InvoiceLine', 'ReturnRecord', 'ReturnLine',
    'Supplier', 'PurchaseRecord', 'PurchaseLine', 'SupplierPayment', 'PaymentAllocation',
    'PurchaseReturnRecord', 'PurchaseReturnLine',
    'Shift', 'TreasuryLog', 'Expense',
]
