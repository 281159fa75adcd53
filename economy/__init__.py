"""Economy: resources, content definitions, modifier aggregation and purchases."""

from .content import Catalog, load_catalog
from .ledger import ResourceLedger
from .modifiers import FinalRates, ModifierState, recompute
from .outcomes import ActionResult, Category, Notification, Reason

__all__ = [
    "ActionResult",
    "Catalog",
    "Category",
    "FinalRates",
    "ModifierState",
    "Notification",
    "Reason",
    "ResourceLedger",
    "load_catalog",
    "recompute",
]
