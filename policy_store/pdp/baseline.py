# (c) Copyright Datacraft, 2026
"""Baseline role-based access control policy installed by the bootstrap step."""
import copy
from typing import Any

ALL_ACTIONS = ['view', 'edit', 'delete', 'approve', 'export', 'batch']

MANAGER_APPROVAL_LIMIT = 10000

ROLES = {
	'admin': {
		'name': 'Administrator',
		'description': 'Full access to all features',
	},
	'manager': {
		'name': 'Manager',
		'description': 'Can view all, edit own, approve limited amounts',
	},
	'analyst': {
		'name': 'Analyst',
		'description': 'Read-only access with export and batch processing',
	},
	'viewer': {
		'name': 'Viewer',
		'description': 'Limited view-only access',
	},
	'operator': {
		'name': 'Operator',
		'description': 'Can view and edit own records, run batch processes',
	},
}

_BASELINE_POLICY = {
	'version': '1.0',
	'ruleset': 'rbac_access_control',
	'description': 'Role-based access control rules for decision making',
	'roles': ROLES,
	'clauses': [
		{
			'id': 'admin_full_access',
			'role': 'admin',
			'action': ALL_ACTIONS,
			'effect': 'allow',
			'reason': 'Admin has full access to all actions',
		},
		{
			'id': 'manager_web_ui_access',
			'role': 'manager',
			'resource_type': 'web_ui',
			'action': ['view', 'edit', 'export', 'batch'],
			'effect': 'allow',
			'reason': 'Manager can access web UI for view, edit, export, and batch actions',
		},
		{
			'id': 'manager_approval_limited',
			'role': 'manager',
			'action': 'approve',
			'amount_max': MANAGER_APPROVAL_LIMIT,
			'effect': 'allow',
			'reason': f'Manager can approve amounts up to ${MANAGER_APPROVAL_LIMIT:,}',
		},
		{
			'id': 'manager_approval_high',
			'role': 'manager',
			'action': 'approve',
			'amount_min': MANAGER_APPROVAL_LIMIT,
			'amount_inclusive': False,
			'effect': 'deny',
			'reason': f'Manager requires admin approval for amounts over ${MANAGER_APPROVAL_LIMIT:,}',
		},
		{
			'id': 'analyst_view_export',
			'role': 'analyst',
			'action': ['view', 'export', 'batch'],
			'effect': 'allow',
			'reason': 'Analyst can view, export, and run batch processes',
		},
		{
			'id': 'analyst_edit_denied',
			'role': 'analyst',
			'action': ['edit', 'delete', 'approve'],
			'effect': 'deny',
			'reason': 'Analyst role does not have edit/delete/approve permissions',
		},
		{
			'id': 'viewer_web_ui_access',
			'role': 'viewer',
			'resource_type': 'web_ui',
			'action': 'view',
			'effect': 'allow',
			'reason': 'Viewer can view web UI',
		},
		{
			'id': 'viewer_limited_access',
			'role': 'viewer',
			'action': 'view',
			'resource_type': ['public', 'shared'],
			'effect': 'allow',
			'reason': 'Viewer can view public and shared resources',
		},
		{
			'id': 'viewer_denied',
			'role': 'viewer',
			'action': ['edit', 'delete', 'approve', 'export', 'batch'],
			'effect': 'deny',
			'reason': 'Viewer role only has view permissions',
		},
		{
			'id': 'operator_own_resources',
			'role': 'operator',
			'action': ['view', 'edit', 'batch'],
			'is_own_resource': True,
			'effect': 'allow',
			'reason': 'Operator can view, edit, and batch process own resources',
		},
		{
			'id': 'operator_others_denied',
			'role': 'operator',
			'is_own_resource': False,
			'effect': 'deny',
			'reason': 'Operator can only access own resources',
		},
		{
			'id': 'batch_process_allowed',
			'role': ['admin', 'manager', 'analyst', 'operator'],
			'action': 'batch',
			'effect': 'allow',
			'reason': 'Batch processing allowed for admin, manager, analyst, and operator roles',
		},
	],
}


def baseline_policy() -> dict[str, Any]:
	"""Fresh copy of the baseline policy document."""
	return copy.deepcopy(_BASELINE_POLICY)
