"""
Routes API par domaine.
"""

from . import proxy
from . import providers
from . import health

__all__ = [
    "proxy",
    "providers",
    "health",
]
