"""Entity package: Product."""

from .entity import Product
from .repository import ProductRepository
from .status import TRANSITIONS, ProductStatus, can_transition, ensure_transition
from .table import ProductTable

__all__ = [
    "Product",
    "ProductRepository",
    "ProductStatus",
    "ProductTable",
    "TRANSITIONS",
    "can_transition",
    "ensure_transition",
]
