"""Dewey - Entity kind registry for DMStore."""

from dmstore.core.dewey.dewey import Dewey, KindEntry, KindRegistry

__all__ = ["Dewey", "KindRegistry", "KindEntry"]
