# (c) Copyright Datacraft, 2026
"""Structural diff between two decoded rule documents."""
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID


@dataclass
class VersionDiff:
	"""Keys are dotted paths into the documents."""
	version_id_1: UUID
	version_id_2: UUID
	added: dict[str, Any] = field(default_factory=dict)
	removed: dict[str, Any] = field(default_factory=dict)
	changed: dict[str, dict[str, Any]] = field(default_factory=dict)

	@property
	def identical(self) -> bool:
		return not (self.added or self.removed or self.changed)

	def to_dict(self) -> dict[str, Any]:
		return {
			'version_id_1': str(self.version_id_1),
			'version_id_2': str(self.version_id_2),
			'added': self.added,
			'removed': self.removed,
			'changed': self.changed,
			'identical': self.identical,
		}


def diff_documents(
	old: dict[str, Any],
	new: dict[str, Any],
	prefix: str = '',
) -> tuple[dict[str, Any], dict[str, Any], dict[str, dict[str, Any]]]:
	"""
	Compare two documents key by key.

	Nested mappings are descended into; any other value (lists included)
	is compared as a whole.

	Returns:
		Tuple of (added, removed, changed)
	"""
	added: dict[str, Any] = {}
	removed: dict[str, Any] = {}
	changed: dict[str, dict[str, Any]] = {}

	for key in old.keys() | new.keys():
		path = f"{prefix}{key}"
		if key not in new:
			removed[path] = old[key]
		elif key not in old:
			added[path] = new[key]
		elif isinstance(old[key], dict) and isinstance(new[key], dict):
			sub_added, sub_removed, sub_changed = diff_documents(
				old[key], new[key], prefix=f"{path}."
			)
			added.update(sub_added)
			removed.update(sub_removed)
			changed.update(sub_changed)
		elif old[key] != new[key] or type(old[key]) is not type(new[key]):
			changed[path] = {'old': old[key], 'new': new[key]}

	return added, removed, changed
