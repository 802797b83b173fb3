from .auth import User, SessionToken
from .sales import SaleRecord, Settlement
from .payees import PayeeMapping

__all__ = [
    'User', 'SessionToken',
    'SaleRecord', 'Settlement',
    'PayeeMapping',
]
