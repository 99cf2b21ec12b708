"""
Database Objects Module
"""

from .executor import DatabaseScriptExecutor, split_batches
from .service import (
    DatabaseObjectsService,
    ObjectKind,
    OrderDetailsSummary,
    OrderItemRequest,
    ProductInventoryStatus,
    SalesReportRow,
    UserProfileSummary,
    build_call,
)

__all__ = [
    "DatabaseObjectsService",
    "DatabaseScriptExecutor",
    "ObjectKind",
    "OrderDetailsSummary",
    "OrderItemRequest",
    "ProductInventoryStatus",
    "SalesReportRow",
    "UserProfileSummary",
    "build_call",
    "split_batches",
]
