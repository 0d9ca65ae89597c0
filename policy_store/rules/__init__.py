# (c) Copyright Datacraft, 2026
"""Rule registry and versioned rule content."""
from .models import Rule, RuleVersion, RuleStatus, VersionStatus
from .document import PolicyDocument, Clause, Effect
from .diff import VersionDiff
from .registry import RuleRegistry
from .versions import VersionStore

__all__ = [
	'Rule',
	'RuleVersion',
	'RuleStatus',
	'VersionStatus',
	'PolicyDocument',
	'Clause',
	'Effect',
	'VersionDiff',
	'RuleRegistry',
	'VersionStore',
]
