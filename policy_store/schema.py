from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from policy_store.rules.models import RuleStatus


class RuleCreateRequest(BaseModel):
    rule_id: str = Field(..., min_length=1, max_length=100)
    ruleset: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    status: RuleStatus = RuleStatus.ACTIVE


class RuleStatusRequest(BaseModel):
    status: RuleStatus


class Rule(BaseModel):
    rule_id: str
    ruleset: str
    description: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class VersionCreateRequest(BaseModel):
    content: dict[str, Any]
    created_by: str = Field(..., min_length=1, max_length=100)
    changelog: str | None = None
    activate: bool = False


class RuleVersion(BaseModel):
    id: UUID
    rule_id: str
    version_number: int
    status: str
    created_by: str
    changelog: str | None = None
    created_at: datetime | None = None
    content: dict[str, Any] = {}

    model_config = ConfigDict(from_attributes=True)


class VersionDiff(BaseModel):
    """Changes from the first version's content to the second's."""
    version_id_1: UUID
    version_id_2: UUID
    added: dict[str, Any] = {}
    removed: dict[str, Any] = {}
    changed: dict[str, dict[str, Any]] = {}
    identical: bool

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = {}
