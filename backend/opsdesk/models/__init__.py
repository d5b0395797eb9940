from .tenancy import Tenant
from .auth import User, SessionRecord
from .documents import Quote, QuoteItem, Invoice, InvoiceItem, DocumentSequence
from .security import SecurityEvent

__all__ = [
    'Tenant',
    'User', 'SessionRecord',
    'Quote', 'QuoteItem', 'Invoice', 'InvoiceItem', 'DocumentSequence',
    'SecurityEvent',
]
