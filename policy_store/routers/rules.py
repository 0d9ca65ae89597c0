# (c) Copyright Datacraft, 2026
"""Rule and rule version administration endpoints."""
import logging

from fastapi import APIRouter, Depends, Query, status

from policy_store import schema
from policy_store.exceptions import NotFound
from policy_store.rules.models import RuleStatus, RuleVersion
from policy_store.rules.registry import RuleRegistry
from policy_store.rules.versions import VersionStore
from .deps import get_registry, get_version_store

logger = logging.getLogger(__name__)
router = APIRouter(
	prefix="/rules",
	tags=["rules"],
	responses={
		404: {"model": schema.ErrorResponse},
		409: {"model": schema.ErrorResponse},
	},
)


def version_response(store: VersionStore, version: RuleVersion) -> schema.RuleVersion:
	return schema.RuleVersion(
		id=version.id,
		rule_id=version.rule_id,
		version_number=version.version_number,
		status=version.status,
		created_by=version.created_by,
		changelog=version.changelog,
		created_at=version.created_at,
		content=store.parsed_content(version),
	)


@router.post("", response_model=schema.Rule, status_code=status.HTTP_201_CREATED)
def create_rule(
	request: schema.RuleCreateRequest,
	registry: RuleRegistry = Depends(get_registry),
) -> schema.Rule:
	"""Register a new rule."""
	rule = registry.create(
		request.rule_id,
		request.ruleset,
		description=request.description,
		status=request.status.value,
	)
	return schema.Rule.model_validate(rule)


@router.get("", response_model=list[schema.Rule])
def list_rules(
	ruleset: str | None = None,
	active: bool = False,
	registry: RuleRegistry = Depends(get_registry),
) -> list[schema.Rule]:
	"""List rules, optionally by ruleset or only active ones."""
	if ruleset:
		rules = registry.list_by_ruleset(ruleset)
		if active:
			rules = [r for r in rules if r.status == RuleStatus.ACTIVE.value]
	elif active:
		rules = registry.list_active()
	else:
		rules = registry.list_all()
	return [schema.Rule.model_validate(r) for r in rules]


@router.get("/{rule_id}", response_model=schema.Rule)
def get_rule(
	rule_id: str,
	registry: RuleRegistry = Depends(get_registry),
) -> schema.Rule:
	return schema.Rule.model_validate(registry.find(rule_id))


@router.patch("/{rule_id}/status", response_model=schema.Rule)
def set_rule_status(
	rule_id: str,
	request: schema.RuleStatusRequest,
	registry: RuleRegistry = Depends(get_registry),
) -> schema.Rule:
	rule = registry.set_status(rule_id, request.status.value)
	return schema.Rule.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
	rule_id: str,
	registry: RuleRegistry = Depends(get_registry),
) -> None:
	"""Delete a rule and all of its versions."""
	registry.delete(rule_id)


@router.post(
	"/{rule_id}/versions",
	response_model=schema.RuleVersion,
	status_code=status.HTTP_201_CREATED,
)
def create_version(
	rule_id: str,
	request: schema.VersionCreateRequest,
	store: VersionStore = Depends(get_version_store),
) -> schema.RuleVersion:
	"""Publish the next version of a rule."""
	version = store.create_version(
		rule_id,
		request.content,
		created_by=request.created_by,
		changelog=request.changelog,
		activate=request.activate,
	)
	return version_response(store, version)


@router.get("/{rule_id}/versions", response_model=list[schema.RuleVersion])
def list_versions(
	rule_id: str,
	limit: int | None = Query(default=None, gt=0),
	registry: RuleRegistry = Depends(get_registry),
	store: VersionStore = Depends(get_version_store),
) -> list[schema.RuleVersion]:
	"""Version history, newest first."""
	registry.find(rule_id)
	return [version_response(store, v) for v in store.versions(rule_id, limit=limit)]


@router.get("/{rule_id}/versions/active", response_model=schema.RuleVersion)
def get_active_version(
	rule_id: str,
	registry: RuleRegistry = Depends(get_registry),
	store: VersionStore = Depends(get_version_store),
) -> schema.RuleVersion:
	registry.find(rule_id)
	version = store.active_version(rule_id)
	if version is None:
		raise NotFound(
			f"No active version for rule {rule_id}",
			details={'rule_id': rule_id},
		)
	return version_response(store, version)


@router.post(
	"/{rule_id}/versions/{version_number}/rollback",
	response_model=schema.RuleVersion,
)
def rollback_version(
	rule_id: str,
	version_number: int,
	store: VersionStore = Depends(get_version_store),
) -> schema.RuleVersion:
	"""Re-activate an earlier version by number."""
	version = store.rollback(rule_id, version_number)
	return version_response(store, version)
