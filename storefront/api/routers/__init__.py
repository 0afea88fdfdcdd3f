from . import cart
from . import catalog

__all__ = [
    "cart",
    "catalog",
]
