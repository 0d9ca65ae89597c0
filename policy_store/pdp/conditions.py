# (c) Copyright Datacraft, 2026
"""Predicate evaluation for policy clauses."""
import logging
from typing import Callable

from policy_store.rules.document import Clause
from .models import DecisionContext

logger = logging.getLogger(__name__)

Predicate = Callable[[Clause, DecisionContext], bool]


class ClauseMatcher:
	"""
	Decides whether a clause applies to a context.

	A clause matches when every predicate it declares holds. Context
	values of the wrong type never match.
	"""

	def __init__(self):
		self._predicates: dict[str, Predicate] = {
			'role': self._role,
			'action': self._action,
			'resource_type': self._resource_type,
			'is_own_resource': self._own_resource,
			'amount': self._amount,
		}

	def matches(self, clause: Clause, context: DecisionContext) -> bool:
		for name, predicate in self._predicates.items():
			if not predicate(clause, context):
				logger.debug(f"Clause {clause.id} failed on {name}")
				return False
		return True

	# Predicate implementations

	def _role(self, clause: Clause, context: DecisionContext) -> bool:
		return _member(context.user_role, clause.role)

	def _action(self, clause: Clause, context: DecisionContext) -> bool:
		return _member(context.action, clause.action)

	def _resource_type(self, clause: Clause, context: DecisionContext) -> bool:
		return _member(context.resource_type, clause.resource_type)

	def _own_resource(self, clause: Clause, context: DecisionContext) -> bool:
		if clause.is_own_resource is None:
			return True
		return context.is_own_resource is clause.is_own_resource

	def _amount(self, clause: Clause, context: DecisionContext) -> bool:
		if not clause.has_amount_bound:
			return True
		amount = context.amount
		if amount is None:
			return False

		if clause.amount_min is not None:
			if clause.amount_inclusive:
				if amount < clause.amount_min:
					return False
			elif amount <= clause.amount_min:
				return False

		if clause.amount_max is not None:
			if clause.amount_inclusive:
				if amount > clause.amount_max:
					return False
			elif amount >= clause.amount_max:
				return False

		return True


def _member(value, allowed: list[str] | None) -> bool:
	if allowed is None:
		return True
	return isinstance(value, str) and value in allowed


# Singleton matcher
_matcher = ClauseMatcher()


def get_clause_matcher() -> ClauseMatcher:
	"""Get the singleton clause matcher."""
	return _matcher
