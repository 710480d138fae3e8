# stockq/models/__init__.py
"""
统一导出 ORM 模型。
"""

from stockq.models.lot import Lot
from stockq.models.order import Order
from stockq.models.stock import Stock
from stockq.models.stock_balance import StockBalance
from stockq.models.stock_movement import StockMovement
from stockq.models.transaction import Transaction

__all__ = ["Lot", "Order", "Stock", "StockBalance", "StockMovement", "Transaction"]
