# (c) Copyright Datacraft, 2026
"""Error taxonomy for the policy store and decision engine."""
from typing import Any


class PolicyStoreError(Exception):
	"""Base exception carrying a stable code and structured details."""

	code = "POLICY_STORE_ERROR"

	def __init__(self, message: str, details: dict[str, Any] | None = None):
		self.message = message
		self.details = details or {}
		super().__init__(message)

	def to_dict(self) -> dict[str, Any]:
		return {
			'code': self.code,
			'message': self.message,
			'details': self.details,
		}


class ValidationError(PolicyStoreError):
	"""Malformed or missing fields on rule or version creation."""

	code = "VALIDATION_ERROR"


class NotFound(PolicyStoreError):
	"""Reference to a nonexistent rule or version."""

	code = "NOT_FOUND"


class Contention(PolicyStoreError):
	"""Per-rule lock could not be acquired within the bounded wait.

	Callers may retry with backoff; the store never retries on its own.
	"""

	code = "CONTENTION"


class ContentDecodeError(PolicyStoreError):
	"""Stored content is not a readable policy document."""

	code = "CONTENT_DECODE_ERROR"


class BootstrapError(PolicyStoreError):
	"""Baseline rule initialization failed.

	Returned by ``DecisionEngine.ensure_rules_initialized`` rather than
	raised, so it is never confused with an evaluation failure.
	"""

	code = "BOOTSTRAP_ERROR"
