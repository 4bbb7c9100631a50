"""
AI Trader - LLM-driven Binance futures trading agent
"""

__version__ = "1.0.0"
