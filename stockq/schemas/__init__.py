# stockq/schemas/__init__.py
"""
Schemas package

不做聚合导出，使用时从具体模块显式导入：
    from stockq.schemas.orders import OrderOut
    from stockq.schemas.stock_issue import StockIssueIn
"""

__all__: list[str] = []
