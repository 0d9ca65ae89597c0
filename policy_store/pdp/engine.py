# (c) Copyright Datacraft, 2026
"""Policy decision engine."""
import functools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Iterator, Mapping
from uuid import UUID

from policy_store.config import Settings, get_settings
from policy_store.exceptions import (
	BootstrapError, ContentDecodeError, NotFound, ValidationError
)
from policy_store.rules.document import Effect, PolicyDocument
from policy_store.rules.models import RuleVersion, VersionStatus
from policy_store.rules.registry import RuleRegistry
from policy_store.rules.versions import VersionStore
from .baseline import baseline_policy
from .conditions import ClauseMatcher, get_clause_matcher
from .models import BatchResult, Decision, DecisionContext, DecisionResult

logger = logging.getLogger(__name__)

RulesetResolver = Callable[[DecisionContext], Iterable[str]]
BootstrapReporter = Callable[[BootstrapError], None]

NO_MATCH_EXPLANATION = "No matching rule: default deny"


class DecisionEngine:
	"""
	Evaluates decision contexts against the active rule versions.

	Evaluation is first-match: clauses are walked in document order,
	rules of a ruleset in rule_id order and rulesets in resolver order.
	Anything short of a matching clause is a denial.
	"""

	def __init__(
		self,
		registry: RuleRegistry,
		store: VersionStore,
		rulesets: Iterable[str] | None = None,
		resolver: RulesetResolver | None = None,
		reporter: BootstrapReporter | None = None,
		matcher: ClauseMatcher | None = None,
		settings: Settings | None = None,
	):
		settings = settings or get_settings()
		self.registry = registry
		self.store = store
		self.rulesets = list(rulesets or settings.default_rulesets)
		self.resolver = resolver
		self.reporter = reporter
		self.matcher = matcher or get_clause_matcher()
		self.cache_enabled = settings.cache_enabled
		self.baseline_rule_id = settings.baseline_rule_id
		self.baseline_ruleset = settings.baseline_ruleset

		# rule_id -> (active version id, decoded document)
		self._cache: dict[str, tuple[UUID, PolicyDocument]] = {}
		self._cache_lock = threading.Lock()
		self._bootstrap_lock = threading.Lock()

		store.add_activation_listener(self.invalidate)

	def evaluate(
		self,
		context: DecisionContext | Mapping[str, Any],
		version_id: UUID | str | None = None,
		rule_id: str | None = None,
		version_number: int | None = None,
	) -> DecisionResult:
		"""
		Evaluate a request context.

		By default every active version of the resolved rulesets is
		consulted. A single rule version can be pinned instead, for
		previews and A/B comparisons: ``version_id`` selects a version
		directly, ``rule_id`` with ``version_number`` selects one by
		number, and ``rule_id`` alone selects that rule's active version.
		Pinned versions are evaluated whatever their status.

		Args:
			context: DecisionContext or a mapping with the same keys
			version_id: pin a version by id
			rule_id: pin a rule, optionally with ``version_number``
			version_number: version of ``rule_id`` to pin

		Returns:
			DecisionResult; never raises, defaults to denied
		"""
		start_time = time.time()

		if not isinstance(context, DecisionContext):
			try:
				context = DecisionContext.from_mapping(context)
			except (AttributeError, TypeError):
				logger.warning(f"Malformed decision context: {context!r}")
				return self._deny(["Malformed context: default deny"], start_time)

		try:
			if version_id is not None or rule_id is not None:
				policies = self._pinned_policies(version_id, rule_id, version_number)
			else:
				policies = list(self._active_policies(self._resolve_rulesets(context)))
		except NotFound as e:
			logger.warning(f"Pinned version unavailable: {e.message}")
			return self._deny(
				["Pinned version not found: default deny", e.message],
				start_time,
			)
		except Exception:
			logger.exception("Failed to load active policies")
			return self._deny(["Policy store unavailable: default deny"], start_time)

		clause_count = 0
		for ruleset, version, document in policies:
			for clause in document.clauses:
				clause_count += 1
				if not self.matcher.matches(clause, context):
					continue

				decision = (
					Decision.ALLOWED if clause.effect == Effect.ALLOW else Decision.DENIED
				)
				result = DecisionResult(
					decision=decision,
					explanations=[
						clause.describe(),
						f"Rule {version.rule_id} v{version.version_number} "
						f"in ruleset {ruleset}",
					],
					matched_clause=clause.id,
					matched_rule_id=version.rule_id,
					matched_version=version.version_number,
					evaluation_time_ms=(time.time() - start_time) * 1000,
				)
				logger.debug(
					f"Decision {decision.value} for role={context.user_role} "
					f"action={context.action} by {clause.id}"
				)
				return result

		return self._deny(
			[
				NO_MATCH_EXPLANATION,
				f"Checked {clause_count} clause(s) in {len(policies)} rule version(s)",
			],
			start_time,
		)

	def evaluate_batch(
		self,
		contexts: Iterable[DecisionContext | Mapping[str, Any]],
		parallel: bool = False,
		max_workers: int | None = None,
		version_id: UUID | str | None = None,
		rule_id: str | None = None,
		version_number: int | None = None,
	) -> BatchResult:
		"""
		Evaluate several contexts, optionally on a thread pool; order is preserved.

		Version pins apply to every context, as in ``evaluate``.
		"""
		start_time = time.time()
		contexts = list(contexts)
		evaluate = functools.partial(
			self.evaluate,
			version_id=version_id,
			rule_id=rule_id,
			version_number=version_number,
		)

		if parallel and len(contexts) > 1:
			with ThreadPoolExecutor(max_workers=max_workers) as pool:
				results = list(pool.map(evaluate, contexts))
		else:
			results = [evaluate(ctx) for ctx in contexts]

		return BatchResult(
			results=results,
			duration_ms=(time.time() - start_time) * 1000,
		)

	def close(self) -> None:
		"""Stop following activations and drop cached documents."""
		self.store.remove_activation_listener(self.invalidate)
		self.invalidate()

	def ensure_rules_initialized(self) -> BootstrapError | None:
		"""
		Make sure the baseline rule exists and has an active version.

		Idempotent and non-fatal: failures are logged, handed to the
		reporter and returned instead of raised.

		Returns:
			None on success, otherwise the BootstrapError
		"""
		with self._bootstrap_lock:
			try:
				self._bootstrap()
			except Exception as e:
				error = BootstrapError(
					f"Failed to initialize baseline rules: {e}",
					details={'rule_id': self.baseline_rule_id},
				)
				logger.exception(error.message)
				self._report(error)
				return error
		return None

	def invalidate(self, rule_id: str | None = None) -> None:
		"""Drop cached documents for one rule, or all of them."""
		with self._cache_lock:
			if rule_id is None:
				self._cache.clear()
			else:
				self._cache.pop(rule_id, None)

	# Internals

	def _resolve_rulesets(self, context: DecisionContext) -> list[str]:
		rulesets = self.resolver(context) if self.resolver else self.rulesets
		# dict keeps first-seen order
		return list(dict.fromkeys(rulesets))

	def _active_policies(
		self,
		rulesets: list[str],
	) -> Iterator[tuple[str, RuleVersion, PolicyDocument]]:
		for ruleset in rulesets:
			for version in self.store.active_versions_for_ruleset(ruleset):
				yield ruleset, version, self._document_for(version)

	def _pinned_policies(
		self,
		version_id: UUID | str | None,
		rule_id: str | None,
		version_number: int | None,
	) -> list[tuple[str, RuleVersion, PolicyDocument]]:
		if version_id is not None:
			version = self.store.get_version(version_id)
			if rule_id is not None and version.rule_id != rule_id:
				raise NotFound(
					f"Version {version_id} does not belong to rule {rule_id}",
					details={'version_id': str(version_id), 'rule_id': rule_id},
				)
		elif version_number is not None:
			version = self.store.get_version_by_number(rule_id, version_number)
		else:
			self.registry.find(rule_id)
			version = self.store.active_version(rule_id)
			if version is None:
				return []

		ruleset = self.registry.find(version.rule_id).ruleset
		if version.status == VersionStatus.ACTIVE.value:
			document = self._document_for(version)
		else:
			# drafts and archived versions stay out of the active cache
			document = self._parse_document(version)
		return [(ruleset, version, document)]

	def _document_for(self, version: RuleVersion) -> PolicyDocument:
		if self.cache_enabled:
			with self._cache_lock:
				cached = self._cache.get(version.rule_id)
			if cached is not None and cached[0] == version.id:
				return cached[1]

		document = self._parse_document(version)

		if self.cache_enabled:
			with self._cache_lock:
				self._cache[version.rule_id] = (version.id, document)
		return document

	def _parse_document(self, version: RuleVersion) -> PolicyDocument:
		content = self.store.parsed_content(version)
		try:
			return PolicyDocument.from_content(content)
		except ContentDecodeError as e:
			logger.warning(
				f"Invalid policy in {version.rule_id} v{version.version_number}, "
				f"treating as empty: {e.details}"
			)
			return PolicyDocument.empty()

	def _bootstrap(self) -> None:
		rule_id = self.baseline_rule_id

		if not self.registry.exists(rule_id):
			try:
				self.registry.create(
					rule_id,
					self.baseline_ruleset,
					description='Role-based access control rules',
				)
			except ValidationError:
				# created concurrently by another process
				if not self.registry.exists(rule_id):
					raise

		if self.store.active_version(rule_id) is not None:
			return

		policy = baseline_policy()
		policy['ruleset'] = self.baseline_ruleset

		latest = self.store.versions(rule_id, limit=1)
		if latest and self.store.parsed_content(latest[0]) == policy:
			self.store.activate(latest[0].id)
		else:
			self.store.create_version(
				rule_id,
				policy,
				created_by='system',
				changelog='Initial RBAC rules version',
				activate=True,
			)
		logger.info(f"Baseline rules initialized: {rule_id}")

	def _report(self, error: BootstrapError) -> None:
		if self.reporter is None:
			return
		try:
			self.reporter(error)
		except Exception:
			logger.exception("Bootstrap error reporter failed")

	def _deny(self, explanations: list[str], start_time: float) -> DecisionResult:
		return DecisionResult(
			decision=Decision.DENIED,
			explanations=explanations,
			evaluation_time_ms=(time.time() - start_time) * 1000,
		)
