"""Plans module - Active plans and their version history."""

from .models import ActivePlan, PlanHistoryEntry
from .store import PlanStore

__all__ = [
	"ActivePlan",
	"PlanHistoryEntry",
	"PlanStore",
]
