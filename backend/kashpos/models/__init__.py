from .catalog import Product, PaymentMethod, CustomerType, AppSetting, OpexItem, OpexSettings
from .sales import SaleLine, TransactionSequence

__all__ = [
    'Product', 'PaymentMethod', 'CustomerType', 'AppSetting', 'OpexItem', 'OpexSettings',
    'SaleLine', 'TransactionSequence',
]
