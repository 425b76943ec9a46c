"""RigCheck: compatibility engine for PC builds."""

from .checker import CompatibilityChecker
from .database import CatalogDatabase
from .partlist import PartList

__version__ = "1.0.0"

__all__ = ["CatalogDatabase", "CompatibilityChecker", "PartList", "__version__"]
