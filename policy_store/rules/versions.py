# (c) Copyright Datacraft, 2026
"""Version store: numbering, activation and content of rule versions."""
import inspect
import json
import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Iterator
from uuid import UUID

from sqlalchemy import select, update, func, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from policy_store.config import get_settings
from policy_store.exceptions import (
	Contention, ContentDecodeError, NotFound, ValidationError
)
from .diff import VersionDiff, diff_documents
from .document import PolicyDocument, is_policy_document
from .locks import KeyedLock
from .models import Rule, RuleStatus, RuleVersion, VersionStatus

logger = logging.getLogger(__name__)

ActivationListener = Callable[[str], None]
ListenerRef = Callable[[], ActivationListener | None]

# SQLSTATEs for lock_not_available and deadlock_detected
_PG_LOCK_ERRORS = {'55P03', '40P01'}


class VersionStore:
	"""
	Owns the versions of every rule.

	Numbering and activation for one rule run inside an exclusive
	critical section: an in-process lock keyed by rule_id plus a
	``SELECT ... FOR UPDATE`` on the owning rule row. Different rules
	never share a lock.
	"""

	def __init__(
		self,
		session_factory: sessionmaker,
		lock_timeout: float | None = None,
	):
		self.session_factory = session_factory
		self.lock_timeout = lock_timeout or get_settings().lock_timeout
		self._locks = KeyedLock(self.lock_timeout)
		self._listeners: list[ListenerRef] = []
		self._listeners_lock = threading.Lock()

	def add_activation_listener(self, listener: ActivationListener) -> None:
		"""
		Register a callback invoked with the rule_id after each committed activation.

		Bound methods are held weakly and dropped once their owner is
		garbage collected; plain functions are held until removed.
		"""
		if inspect.ismethod(listener):
			ref = weakref.WeakMethod(listener)
		else:
			ref = _strong_ref(listener)
		with self._listeners_lock:
			self._listeners = [r for r in self._listeners if r() is not None]
			self._listeners.append(ref)

	def remove_activation_listener(self, listener: ActivationListener) -> None:
		with self._listeners_lock:
			self._listeners = [
				r for r in self._listeners
				if r() is not None and r() != listener
			]

	def activation_listeners(self) -> list[ActivationListener]:
		"""Currently registered listeners that are still alive."""
		with self._listeners_lock:
			listeners = [r() for r in self._listeners]
		return [listener for listener in listeners if listener is not None]

	# Writes

	def create_version(
		self,
		rule_id: str,
		content: dict[str, Any] | str,
		created_by: str,
		changelog: str | None = None,
		activate: bool = False,
	) -> RuleVersion:
		"""
		Create the next numbered version of a rule.

		Args:
			rule_id: Owning rule
			content: Policy document, as a mapping or a JSON string
			created_by: Author of the version
			changelog: Optional change note, defaults to "Version <n>"
			activate: Activate the new version in the same transaction

		Returns:
			The new RuleVersion

		Raises:
			NotFound: rule does not exist
			ValidationError: empty/invalid content or missing created_by
			Contention: the rule is locked by another writer for too long
		"""
		if not created_by or not str(created_by).strip():
			raise ValidationError("created_by is expected to be non-empty")
		serialized = serialize_content(content)

		with self._transaction(rule_id) as db:
			self._lock_rule(db, rule_id)

			current = db.scalar(
				select(func.max(RuleVersion.version_number))
				.where(RuleVersion.rule_id == rule_id)
			)
			version_number = (current or 0) + 1

			version = RuleVersion(
				rule_id=rule_id,
				version_number=version_number,
				content=serialized,
				created_by=created_by,
				changelog=changelog or f"Version {version_number}",
				status=VersionStatus.DRAFT.value,
			)
			db.add(version)
			db.flush()

			if activate:
				self._swap_active(db, version)

			db.commit()
			db.refresh(version)

		logger.info(
			f"Created version {version_number} of {rule_id} "
			f"by {created_by} ({version.status})"
		)
		if activate:
			self._notify(rule_id)
		return version

	def activate(self, version_id: UUID | str) -> RuleVersion:
		"""
		Make a version the single active version of its rule.

		Every other active version of the same rule is archived in the
		same transaction.
		"""
		rule_id = self.get_version(version_id).rule_id

		with self._transaction(rule_id) as db:
			self._lock_rule(db, rule_id)
			version = db.get(RuleVersion, _as_uuid(version_id))
			if version is None:
				raise NotFound(
					f"Version not found: {version_id}",
					details={'version_id': str(version_id)},
				)

			prev_status = version.status
			self._swap_active(db, version)
			db.commit()

		logger.info(
			f"Activated {rule_id} v{version.version_number} (was {prev_status})"
		)
		self._notify(rule_id)
		return version

	def archive(self, version_id: UUID | str) -> RuleVersion:
		"""Move a version to archived; archiving the active version leaves the rule without one."""
		rule_id = self.get_version(version_id).rule_id

		with self._transaction(rule_id) as db:
			self._lock_rule(db, rule_id)
			version = db.get(RuleVersion, _as_uuid(version_id))
			if version is None:
				raise NotFound(
					f"Version not found: {version_id}",
					details={'version_id': str(version_id)},
				)

			was_active = version.status == VersionStatus.ACTIVE.value
			version.status = VersionStatus.ARCHIVED.value
			db.commit()

		logger.info(f"Archived {rule_id} v{version.version_number}")
		if was_active:
			self._notify(rule_id)
		return version

	def rollback(self, rule_id: str, version_number: int) -> RuleVersion:
		"""Re-activate an earlier version by its number."""
		version = self.get_version_by_number(rule_id, version_number)
		logger.info(f"Rolling back {rule_id} to version {version_number}")
		return self.activate(version.id)

	# Reads

	def get_version(self, version_id: UUID | str) -> RuleVersion:
		with self.session_factory() as db:
			version = db.get(RuleVersion, _as_uuid(version_id))
			if version is None:
				raise NotFound(
					f"Version not found: {version_id}",
					details={'version_id': str(version_id)},
				)
			return version

	def get_version_by_number(self, rule_id: str, version_number: int) -> RuleVersion:
		stmt = select(RuleVersion).where(
			RuleVersion.rule_id == rule_id,
			RuleVersion.version_number == version_number,
		)
		with self.session_factory() as db:
			version = db.scalar(stmt)
			if version is None:
				raise NotFound(
					f"Version not found: {rule_id} v{version_number}",
					details={'rule_id': rule_id, 'version_number': version_number},
				)
			return version

	def active_version(self, rule_id: str) -> RuleVersion | None:
		stmt = select(RuleVersion).where(
			RuleVersion.rule_id == rule_id,
			RuleVersion.status == VersionStatus.ACTIVE.value,
		)
		with self.session_factory() as db:
			return db.scalar(stmt)

	def versions(self, rule_id: str, limit: int | None = None) -> list[RuleVersion]:
		"""All versions of a rule, newest first."""
		stmt = (
			select(RuleVersion)
			.where(RuleVersion.rule_id == rule_id)
			.order_by(RuleVersion.version_number.desc())
		)
		if limit is not None:
			stmt = stmt.limit(limit)
		with self.session_factory() as db:
			return list(db.scalars(stmt))

	def active_versions_for_ruleset(self, ruleset: str) -> list[RuleVersion]:
		"""Active versions of the active rules in a ruleset, in rule_id order."""
		stmt = (
			select(RuleVersion)
			.join(Rule, Rule.rule_id == RuleVersion.rule_id)
			.where(
				Rule.ruleset == ruleset,
				Rule.status == RuleStatus.ACTIVE.value,
				RuleVersion.status == VersionStatus.ACTIVE.value,
			)
			.order_by(Rule.rule_id)
		)
		with self.session_factory() as db:
			return list(db.scalars(stmt))

	def compare(self, version_id_1: UUID | str, version_id_2: UUID | str) -> VersionDiff:
		"""Structural difference from the first version's content to the second's."""
		first = self.get_version(version_id_1)
		second = self.get_version(version_id_2)

		added, removed, changed = diff_documents(
			self.parsed_content(first),
			self.parsed_content(second),
		)
		return VersionDiff(
			version_id_1=first.id,
			version_id_2=second.id,
			added=added,
			removed=removed,
			changed=changed,
		)

	def parsed_content(self, version: RuleVersion) -> dict[str, Any]:
		"""Decoded content of a version; unreadable content decodes to ``{}``."""
		try:
			return decode_content(version.content)
		except ContentDecodeError as e:
			logger.warning(
				f"Unreadable content in {version.rule_id} v{version.version_number}: "
				f"{e.message}"
			)
			return {}

	# Internals

	@contextmanager
	def _transaction(self, rule_id: str) -> Iterator[Session]:
		with self._locks.hold(rule_id):
			with self.session_factory() as db:
				try:
					dialect = db.get_bind().dialect.name
					if dialect == 'postgresql':
						timeout_ms = int(self.lock_timeout * 1000)
						db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
					elif dialect == 'sqlite':
						# FOR UPDATE is a no-op here; take the database write
						# lock before the max read so other processes queue
						db.connection().exec_driver_sql("BEGIN IMMEDIATE")
					yield db
				except IntegrityError as e:
					db.rollback()
					logger.warning(f"Integrity violation on {rule_id}: {e.orig}")
					raise ValidationError(
						f"Conflicting version data for {rule_id}",
						details={'rule_id': rule_id},
					) from e
				except OperationalError as e:
					db.rollback()
					if not _is_lock_error(e):
						raise
					logger.warning(f"Database lock timeout on {rule_id}: {e.orig}")
					raise Contention(
						f"Rule {rule_id} is locked by another writer",
						details={'rule_id': rule_id},
					) from e

	def _lock_rule(self, db: Session, rule_id: str) -> Rule:
		rule = db.scalar(
			select(Rule).where(Rule.rule_id == rule_id).with_for_update()
		)
		if rule is None:
			raise NotFound(f"Rule not found: {rule_id}", details={'rule_id': rule_id})
		return rule

	def _swap_active(self, db: Session, version: RuleVersion) -> None:
		# Archive first so the one-active index holds at every statement
		db.execute(
			update(RuleVersion)
			.where(
				RuleVersion.rule_id == version.rule_id,
				RuleVersion.status == VersionStatus.ACTIVE.value,
				RuleVersion.id != version.id,
			)
			.values(status=VersionStatus.ARCHIVED.value)
		)
		version.status = VersionStatus.ACTIVE.value
		db.flush()

	def _notify(self, rule_id: str) -> None:
		for listener in self.activation_listeners():
			try:
				listener(rule_id)
			except Exception:
				logger.exception(f"Activation listener failed for {rule_id}")


def serialize_content(content: dict[str, Any] | str) -> str:
	"""
	Validate and serialize version content.

	Content must survive a JSON round trip unchanged, so non-string
	keys, tuples and other non-JSON values are rejected rather than
	coerced.

	Raises:
		ValidationError: content is empty, not a JSON object, not
			representable as JSON, or declares clauses that do not form a
			valid policy document
	"""
	if isinstance(content, str):
		try:
			content = json.loads(content)
		except ValueError as e:
			raise ValidationError(f"Content is not valid JSON: {e}") from e

	if not isinstance(content, dict) or not content:
		raise ValidationError("content is expected to be a non-empty object")

	if is_policy_document(content):
		try:
			PolicyDocument.from_content(content)
		except ContentDecodeError as e:
			raise ValidationError(e.message, details=e.details) from e

	try:
		serialized = json.dumps(content, allow_nan=False)
	except (TypeError, ValueError) as e:
		raise ValidationError(f"Content is not serializable: {e}") from e

	if not _same_json(json.loads(serialized), content):
		raise ValidationError(
			"Content does not survive JSON serialization unchanged; "
			"use string keys and lists"
		)
	return serialized


def decode_content(raw: str | None) -> dict[str, Any]:
	"""
	Decode stored content.

	Raises:
		ContentDecodeError: content is not a JSON object
	"""
	try:
		content = json.loads(raw)
	except (TypeError, ValueError) as e:
		raise ContentDecodeError(f"Invalid JSON: {e}") from e

	if not isinstance(content, dict):
		raise ContentDecodeError(
			f"Expected a JSON object, got {type(content).__name__}"
		)
	return content


def _same_json(decoded: Any, original: Any) -> bool:
	if isinstance(decoded, dict):
		return (
			type(original) is dict
			and decoded.keys() == original.keys()
			and all(_same_json(decoded[k], original[k]) for k in decoded)
		)
	if isinstance(decoded, list):
		return (
			type(original) is list
			and len(decoded) == len(original)
			and all(_same_json(d, o) for d, o in zip(decoded, original))
		)
	return type(decoded) is type(original) and decoded == original


def _strong_ref(listener: ActivationListener) -> ListenerRef:
	return lambda: listener


def _as_uuid(value: UUID | str) -> UUID:
	if isinstance(value, UUID):
		return value
	try:
		return UUID(str(value))
	except ValueError as e:
		raise NotFound(
			f"Version not found: {value}",
			details={'version_id': str(value)},
		) from e


def _is_lock_error(error: OperationalError) -> bool:
	orig = error.orig
	sqlstate = getattr(orig, 'sqlstate', None) or getattr(orig, 'pgcode', None)
	if sqlstate in _PG_LOCK_ERRORS:
		return True
	return 'locked' in str(orig).lower()
