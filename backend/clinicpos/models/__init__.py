from .catalog import CustomerCategory, Product, ProductPrice, Treatment
from .people import User, Member, TherapistLevel, Therapist
from .inventory import StockMovement, INBOUND_KINDS, OUTBOUND_KINDS, MOVEMENT_KINDS
from .transactions import Transaction, TransactionItem, Commission, CheckoutFailure
from .documents import DocumentSequence, AuditEvent
from .settings import StoreSettings

__all__ = [
    'CustomerCategory', 'Product', 'ProductPrice', 'Treatment',
    'User', 'Member', 'TherapistLevel', 'Therapist',
    'StockMovement', 'INBOUND_KINDS', 'OUTBOUND_KINDS', 'MOVEMENT_KINDS',
    'Transaction', 'TransactionItem', 'Commission', 'CheckoutFailure',
    'DocumentSequence', 'AuditEvent',
    'StoreSettings',
]
