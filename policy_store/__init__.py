# (c) Copyright Datacraft, 2026
"""Versioned policy store with a role-based decision engine."""
