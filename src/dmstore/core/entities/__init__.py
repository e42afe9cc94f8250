"""Entities - Kinds, identifier allocation and the EntityStore.

- **EntityKind**: Schema of one entity table (document, root, tag, fields).
- **IdentifierAllocator**: ``max + 1`` id allocation.
- **EntityStore**: Entity, field, attribute and nested-child CRUD.
- **Markup**: Marks a field value to be stored verbatim as markup.
"""

from dmstore.core.entities.allocator import DEFAULT_ID_SELECTOR, IdentifierAllocator
from dmstore.core.entities.entity_store import EntityStore, FieldValues, Markup
from dmstore.core.entities.kinds import DEFAULT_KINDS, EntityKind

__all__ = [
    "EntityKind",
    "DEFAULT_KINDS",
    "IdentifierAllocator",
    "DEFAULT_ID_SELECTOR",
    "EntityStore",
    "FieldValues",
    "Markup",
]
