# (c) Copyright Datacraft, 2026
"""Version activation and comparison endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends

from policy_store import schema
from policy_store.rules.versions import VersionStore
from .deps import get_version_store
from .rules import version_response

logger = logging.getLogger(__name__)
router = APIRouter(
	prefix="/versions",
	tags=["versions"],
	responses={
		404: {"model": schema.ErrorResponse},
		409: {"model": schema.ErrorResponse},
	},
)


@router.get("/compare", response_model=schema.VersionDiff)
def compare_versions(
	version_id_1: UUID,
	version_id_2: UUID,
	store: VersionStore = Depends(get_version_store),
) -> schema.VersionDiff:
	"""Structural diff between the contents of two versions."""
	diff = store.compare(version_id_1, version_id_2)
	return schema.VersionDiff(
		version_id_1=diff.version_id_1,
		version_id_2=diff.version_id_2,
		added=diff.added,
		removed=diff.removed,
		changed=diff.changed,
		identical=diff.identical,
	)


@router.get("/{version_id}", response_model=schema.RuleVersion)
def get_version(
	version_id: UUID,
	store: VersionStore = Depends(get_version_store),
) -> schema.RuleVersion:
	return version_response(store, store.get_version(version_id))


@router.post("/{version_id}/activate", response_model=schema.RuleVersion)
def activate_version(
	version_id: UUID,
	store: VersionStore = Depends(get_version_store),
) -> schema.RuleVersion:
	"""Activate a version, archiving the rule's previously active one."""
	return version_response(store, store.activate(version_id))


@router.post("/{version_id}/archive", response_model=schema.RuleVersion)
def archive_version(
	version_id: UUID,
	store: VersionStore = Depends(get_version_store),
) -> schema.RuleVersion:
	return version_response(store, store.archive(version_id))
