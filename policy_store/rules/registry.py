# (c) Copyright Datacraft, 2026
"""Rule registry: identity and lifecycle of named rules."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from policy_store.exceptions import NotFound, ValidationError
from .models import Rule, RuleStatus

logger = logging.getLogger(__name__)

RULE_STATUSES = {s.value for s in RuleStatus}


class RuleRegistry:
	"""Create, look up, list and delete rules."""

	def __init__(self, session_factory: sessionmaker):
		self.session_factory = session_factory

	def create(
		self,
		rule_id: str,
		ruleset: str,
		description: str | None = None,
		status: str = RuleStatus.ACTIVE.value,
	) -> Rule:
		"""
		Register a new rule.

		Raises:
			ValidationError: empty rule_id or ruleset, invalid status,
				or rule_id already taken
		"""
		if not rule_id or not rule_id.strip():
			raise ValidationError("rule_id is expected to be non-empty")
		if not ruleset or not ruleset.strip():
			raise ValidationError("ruleset is expected to be non-empty")
		status = _check_status(status)

		with self.session_factory() as db:
			if self._get(db, rule_id) is not None:
				raise ValidationError(
					f"Rule already exists: {rule_id}",
					details={'rule_id': rule_id},
				)

			rule = Rule(
				rule_id=rule_id,
				ruleset=ruleset,
				description=description,
				status=status,
			)
			db.add(rule)
			try:
				db.commit()
			except IntegrityError as e:
				db.rollback()
				raise ValidationError(
					f"Rule already exists: {rule_id}",
					details={'rule_id': rule_id},
				) from e
			db.refresh(rule)

		logger.info(f"Rule created: {rule_id} in ruleset {ruleset}")
		return rule

	def find(self, rule_id: str) -> Rule:
		"""Get a rule by its rule_id or raise NotFound."""
		with self.session_factory() as db:
			rule = self._get(db, rule_id)
			if rule is None:
				raise NotFound(f"Rule not found: {rule_id}", details={'rule_id': rule_id})
			return rule

	def exists(self, rule_id: str) -> bool:
		with self.session_factory() as db:
			return self._get(db, rule_id) is not None

	def list_all(self) -> list[Rule]:
		with self.session_factory() as db:
			return list(db.scalars(select(Rule).order_by(Rule.rule_id)))

	def list_by_ruleset(self, ruleset: str) -> list[Rule]:
		stmt = select(Rule).where(Rule.ruleset == ruleset).order_by(Rule.rule_id)
		with self.session_factory() as db:
			return list(db.scalars(stmt))

	def list_active(self) -> list[Rule]:
		stmt = (
			select(Rule)
			.where(Rule.status == RuleStatus.ACTIVE.value)
			.order_by(Rule.rule_id)
		)
		with self.session_factory() as db:
			return list(db.scalars(stmt))

	def set_status(self, rule_id: str, status: str) -> Rule:
		"""Change the coarse status of a rule."""
		status = _check_status(status)

		with self.session_factory() as db:
			rule = self._get(db, rule_id)
			if rule is None:
				raise NotFound(f"Rule not found: {rule_id}", details={'rule_id': rule_id})

			prev_status = rule.status
			rule.status = status
			db.commit()
			db.refresh(rule)

		logger.info(f"Rule {rule_id} status changed: {prev_status} -> {status}")
		return rule

	def delete(self, rule_id: str) -> None:
		"""Delete a rule together with all of its versions."""
		with self.session_factory() as db:
			rule = self._get(db, rule_id)
			if rule is None:
				raise NotFound(f"Rule not found: {rule_id}", details={'rule_id': rule_id})

			db.delete(rule)
			db.commit()

		logger.info(f"Rule deleted: {rule_id}")

	def _get(self, db: Session, rule_id: str) -> Rule | None:
		return db.scalar(select(Rule).where(Rule.rule_id == rule_id))


def _check_status(status: str) -> str:
	if status not in RULE_STATUSES:
		raise ValidationError(
			f"Invalid rule status: {status}",
			details={'allowed': sorted(RULE_STATUSES)},
		)
	return RuleStatus(status).value
