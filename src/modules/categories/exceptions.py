"""Category domain exceptions."""

from __future__ import annotations


class CategoryAlreadyExists(Exception):
    """Another category already uses the requested slug."""


class CategoryNotFound(Exception):
    """The requested category does not exist."""
