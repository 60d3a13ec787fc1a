from .sites import Quarry, Product
from .transactions import Sale, Expense, FuelUsage, Banking, Prepayment, PAYMENT_STATUS_PAID, PAYMENT_STATUS_NOT_PAID
from .balances import DailyBalanceSnapshot

__all__ = [
    'Quarry', 'Product',
    'Sale', 'Expense', 'FuelUsage', 'Banking', 'Prepayment',
    'PAYMENT_STATUS_PAID', 'PAYMENT_STATUS_NOT_PAID',
    'DailyBalanceSnapshot',
]
