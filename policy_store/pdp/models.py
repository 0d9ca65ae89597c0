# (c) Copyright Datacraft, 2026
"""Decision request and result types."""
import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Mapping

APPROVE_ACTION = 'approve'


class Decision(str, Enum):
	"""Outcome of an evaluation."""
	ALLOWED = 'allowed'
	DENIED = 'denied'


def parse_amount(value: Any) -> float | None:
	"""Interpret value as a finite, non-negative amount, or None."""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, str):
		value = value.strip()
		if not value:
			return None
	try:
		amount = float(value)
	except (TypeError, ValueError, OverflowError):
		return None
	if not math.isfinite(amount) or amount < 0:
		return None
	return amount


@dataclass
class DecisionContext:
	"""
	Who wants to do what, on which resource, for how much.

	``is_own_resource`` is derived from the owner when not given, and
	``amount`` is only kept for approve actions.
	"""
	user_id: str | None
	user_role: str | None
	action: str | None
	resource_type: str | None = 'public'
	resource_owner: str | None = None
	is_own_resource: bool | None = None
	amount: float | None = None

	def __post_init__(self):
		if not isinstance(self.is_own_resource, bool):
			self.is_own_resource = (
				self.resource_owner is None or self.resource_owner == self.user_id
			)
		if self.action == APPROVE_ACTION:
			self.amount = parse_amount(self.amount)
		else:
			self.amount = None

	@classmethod
	def from_mapping(cls, data: Mapping[str, Any]) -> 'DecisionContext':
		"""Build a context from a loosely typed mapping; unknown keys are ignored."""
		return cls(
			user_id=data.get('user_id'),
			user_role=data.get('user_role'),
			action=data.get('action'),
			resource_type=data.get('resource_type', 'public'),
			resource_owner=data.get('resource_owner'),
			is_own_resource=data.get('is_own_resource'),
			amount=data.get('amount'),
		)

	def to_dict(self) -> dict[str, Any]:
		return asdict(self)


@dataclass
class DecisionResult:
	"""Result of evaluating a context against the active policies."""
	decision: Decision
	explanations: list[str] = field(default_factory=list)
	matched_clause: str | None = None
	matched_rule_id: str | None = None
	matched_version: int | None = None
	evaluation_time_ms: float = 0

	@property
	def allowed(self) -> bool:
		return self.decision == Decision.ALLOWED

	def to_dict(self) -> dict[str, Any]:
		return {
			'decision': self.decision.value,
			'explanations': list(self.explanations),
			'matched_clause': self.matched_clause,
			'matched_rule_id': self.matched_rule_id,
			'matched_version': self.matched_version,
			'evaluation_time_ms': self.evaluation_time_ms,
		}


@dataclass
class BatchResult:
	"""Results of a batch evaluation, in input order."""
	results: list[DecisionResult]
	duration_ms: float = 0

	@property
	def allowed(self) -> int:
		return sum(1 for r in self.results if r.allowed)

	@property
	def denied(self) -> int:
		return len(self.results) - self.allowed
