"""
Trading Agents

Market data gathering and risk audit collaborators of the trading loop
"""

from .data_sync_agent import (
    DataSyncAgent,
    MarketData,
    SymbolData,
    PositionSnapshot,
    AccountSummary,
    TechnicalIndicators,
)
from .risk_audit_agent import RiskAuditAgent, RiskAssessment, TradeCandidate

__all__ = [
    'DataSyncAgent',
    'MarketData',
    'SymbolData',
    'PositionSnapshot',
    'AccountSummary',
    'TechnicalIndicators',
    'RiskAuditAgent',
    'RiskAssessment',
    'TradeCandidate',
]
