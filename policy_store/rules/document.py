# (c) Copyright Datacraft, 2026
"""Policy document format stored in rule versions."""
import logging
from enum import Enum
from typing import Any

from pydantic import (
	BaseModel, ConfigDict, Field, AliasChoices,
	field_validator, model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from policy_store.exceptions import ContentDecodeError

logger = logging.getLogger(__name__)


class Effect(str, Enum):
	"""Clause effect."""
	ALLOW = 'allow'
	DENY = 'deny'


class Clause(BaseModel):
	"""
	Named condition-to-effect mapping.

	Every predicate that is present must hold for the clause to match;
	absent predicates do not constrain. Example:

	{
		"id": "manager_approval_limited",
		"role": "manager",
		"action": "approve",
		"amount_max": 10000,
		"effect": "allow"
	}
	"""
	id: str | None = Field(default=None, min_length=1)
	effect: Effect
	reason: str | None = None

	role: list[str] | None = Field(
		default=None, validation_alias=AliasChoices('role', 'roles')
	)
	action: list[str] | None = Field(
		default=None, validation_alias=AliasChoices('action', 'actions')
	)
	resource_type: list[str] | None = Field(
		default=None, validation_alias=AliasChoices('resource_type', 'resource_types')
	)
	is_own_resource: bool | None = None

	# Only checked against approve requests
	amount_min: float | None = Field(default=None, ge=0)
	amount_max: float | None = Field(default=None, ge=0)
	amount_inclusive: bool = True

	model_config = ConfigDict(extra='forbid')

	@field_validator('role', 'action', 'resource_type', mode='before')
	@classmethod
	def _single_value_as_list(cls, value: Any) -> Any:
		if isinstance(value, str):
			return [value]
		return value

	@model_validator(mode='after')
	def _check_amount_range(self) -> 'Clause':
		if (
			self.amount_min is not None
			and self.amount_max is not None
			and self.amount_min > self.amount_max
		):
			raise ValueError("amount_min must not exceed amount_max")
		return self

	@property
	def has_amount_bound(self) -> bool:
		return self.amount_min is not None or self.amount_max is not None

	def describe(self) -> str:
		if self.reason:
			return f"{self.id}: {self.reason}"
		return f"{self.id}: {self.effect.value}"


class PolicyDocument(BaseModel):
	"""
	Ordered list of clauses; the first matching clause decides.

	Top-level keys other than the declared ones are kept as metadata.
	"""
	version: str | int | float | None = None
	ruleset: str | None = None
	description: str | None = None
	clauses: list[Clause] = Field(default_factory=list)

	model_config = ConfigDict(extra='allow')

	@model_validator(mode='after')
	def _assign_clause_ids(self) -> 'PolicyDocument':
		seen = set()
		for index, clause in enumerate(self.clauses, start=1):
			if clause.id is None:
				clause.id = f"clause_{index}"
			if clause.id in seen:
				raise ValueError(f"Duplicate clause id: {clause.id}")
			seen.add(clause.id)
		return self

	@classmethod
	def empty(cls) -> 'PolicyDocument':
		return cls()

	@classmethod
	def from_content(cls, content: dict[str, Any]) -> 'PolicyDocument':
		"""
		Build a document from decoded version content.

		Content without a ``clauses`` key is free-form and yields an
		empty document.

		Raises:
			ContentDecodeError: if ``clauses`` is present but invalid
		"""
		if not is_policy_document(content):
			return cls.empty()
		try:
			return cls.model_validate(content)
		except PydanticValidationError as e:
			raise ContentDecodeError(
				"Invalid policy document",
				details={'errors': e.errors(include_url=False, include_context=False, include_input=False)},
			) from e


def is_policy_document(content: Any) -> bool:
	"""Whether content declares clauses and must follow the document schema."""
	return isinstance(content, dict) and 'clauses' in content
