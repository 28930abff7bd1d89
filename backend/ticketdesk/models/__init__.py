from .scopes import EventSession
from .staff import Staff
from .ticketing import (
    Ride, TicketStock, TicketDistribution,
    StockStatus, DistributionStatus, STOCK_TRANSITIONS, DISTRIBUTION_TRANSITIONS,
)
from .settlements import StaffSettlement, CashSettlementStatus
from .accounting import AccountingTransaction, AuditLog

__all__ = [
    'EventSession', 'Staff',
    'Ride', 'TicketStock', 'TicketDistribution',
    'StockStatus', 'DistributionStatus', 'STOCK_TRANSITIONS', 'DISTRIBUTION_TRANSITIONS',
    'StaffSettlement', 'CashSettlementStatus',
    'AccountingTransaction', 'AuditLog',
]
