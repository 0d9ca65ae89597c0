# (c) Copyright Datacraft, 2026
"""Dependencies shared by the admin routers."""
from fastapi import Request

from policy_store.rules.registry import RuleRegistry
from policy_store.rules.versions import VersionStore


def get_registry(request: Request) -> RuleRegistry:
	return request.app.state.registry


def get_version_store(request: Request) -> VersionStore:
	return request.app.state.version_store
