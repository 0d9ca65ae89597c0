# (c) Copyright Datacraft, 2026
"""Rule and rule version models."""
import uuid
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
	String, ForeignKey, Index, UniqueConstraint, CheckConstraint,
	Text, Integer, DateTime, Uuid, func, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from policy_store.db.base import Base


class RuleStatus(str, Enum):
	"""Coarse lifecycle of a rule, independent of its versions."""
	ACTIVE = 'active'
	INACTIVE = 'inactive'
	ARCHIVED = 'archived'


class VersionStatus(str, Enum):
	"""Status of a rule version."""
	DRAFT = 'draft'
	ACTIVE = 'active'
	ARCHIVED = 'archived'


class Rule(Base):
	"""
	Named rule grouped under a ruleset.

	A rule owns its versions: deleting the rule deletes every version.
	"""

	__tablename__ = "rules"

	id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
	rule_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
	ruleset: Mapped[str] = mapped_column(String(100), nullable=False)
	description: Mapped[str | None] = mapped_column(Text, nullable=True)
	status: Mapped[str] = mapped_column(String(20), default=RuleStatus.ACTIVE.value)
	created_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now()
	)
	updated_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
	)

	# Relationships
	versions: Mapped[list["RuleVersion"]] = relationship(
		"RuleVersion", back_populates="rule", cascade="all, delete-orphan",
		order_by="RuleVersion.version_number.desc()"
	)

	__table_args__ = (
		Index("idx_rule_ruleset", "ruleset"),
		Index("idx_rule_status", "status"),
		CheckConstraint(
			"status IN ('active', 'inactive', 'archived')",
			name="ck_rule_status"
		),
	)

	def __repr__(self):
		return f"Rule({self.rule_id} in {self.ruleset}: {self.status})"


class RuleVersion(Base):
	"""
	Numbered content snapshot of a rule.

	Version numbers are dense per rule and never change once assigned.
	Content is kept as serialized JSON text so that unreadable legacy
	rows can still be loaded and decoded defensively.
	"""

	__tablename__ = "rule_versions"

	id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
	rule_id: Mapped[str] = mapped_column(
		ForeignKey("rules.rule_id", ondelete="CASCADE"),
		nullable=False,
	)
	version_number: Mapped[int] = mapped_column(Integer, nullable=False)
	content: Mapped[str] = mapped_column(Text, nullable=False)
	status: Mapped[str] = mapped_column(String(20), default=VersionStatus.DRAFT.value)
	created_by: Mapped[str] = mapped_column(String(100), nullable=False)
	changelog: Mapped[str | None] = mapped_column(Text, nullable=True)
	created_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now()
	)

	# Relationships
	rule: Mapped["Rule"] = relationship("Rule", back_populates="versions")

	__table_args__ = (
		UniqueConstraint("rule_id", "version_number", name="uq_rule_version_number"),
		Index("idx_rule_version_status", "rule_id", "status"),
		# At most one active version per rule
		Index(
			"uq_rule_version_one_active", "rule_id", unique=True,
			sqlite_where=text("status = 'active'"),
			postgresql_where=text("status = 'active'"),
		),
		CheckConstraint("version_number > 0", name="ck_rule_version_positive"),
		CheckConstraint(
			"status IN ('draft', 'active', 'archived')",
			name="ck_rule_version_status"
		),
	)

	def __repr__(self):
		return f"RuleVersion({self.rule_id} v{self.version_number}: {self.status})"
