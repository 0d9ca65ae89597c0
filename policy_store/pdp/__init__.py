# (c) Copyright Datacraft, 2026
"""Policy decision point: evaluates contexts against active rule versions."""
from .models import (
	Decision, DecisionContext, DecisionResult, BatchResult, parse_amount
)
from .conditions import ClauseMatcher
from .engine import DecisionEngine
from .baseline import baseline_policy

__all__ = [
	'Decision',
	'DecisionContext',
	'DecisionResult',
	'BatchResult',
	'parse_amount',
	'ClauseMatcher',
	'DecisionEngine',
	'baseline_policy',
]
