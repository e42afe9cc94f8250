"""XUpdate - Path expression and update fragment builders.

Pure string composition, no I/O:

- **paths**: XPath selectors for the entities root, entities, fields, attributes.
- **fragments**: XUpdate documents (append, insert, remove, rename, update,
  copy/move) including the empty-update rewrite.

Quick Start
-----------
    >>> from dmstore.core.xupdate import entity_by_id, field_of, update
    >>> fragment = update(field_of(entity_by_id(7), "email"), "a@x.com")
    >>> xml = fragment.to_xml()
"""

from dmstore.core.xupdate.fragments import (
    XUPDATE_NS,
    Modifications,
    add_attribute,
    append,
    copy,
    copy_after,
    copy_before,
    copy_inside,
    insert_after,
    insert_before,
    is_attribute_path,
    move,
    move_after,
    move_before,
    move_inside,
    remove,
    rename,
    split_attribute_path,
    text_payload,
    update,
)
from dmstore.core.xupdate.paths import (
    DEFAULT_WRAPPER,
    ID_ATTRIBUTE,
    all_ids,
    attribute_of,
    child_by_id,
    child_ids,
    entities_root,
    entity_by_attribute,
    entity_by_id,
    entity_by_predicate,
    field_of,
    field_with_value,
    validate_field_path,
    validate_id,
    validate_name,
    xpath_literal,
)

__all__ = [
    # Paths
    "DEFAULT_WRAPPER",
    "ID_ATTRIBUTE",
    "entities_root",
    "entity_by_id",
    "entity_by_predicate",
    "entity_by_attribute",
    "field_of",
    "field_with_value",
    "attribute_of",
    "all_ids",
    "child_by_id",
    "child_ids",
    "validate_name",
    "validate_field_path",
    "validate_id",
    "xpath_literal",
    # Fragments
    "XUPDATE_NS",
    "Modifications",
    "append",
    "add_attribute",
    "insert_before",
    "insert_after",
    "remove",
    "rename",
    "update",
    "copy",
    "move",
    "copy_before",
    "copy_after",
    "copy_inside",
    "move_before",
    "move_after",
    "move_inside",
    "text_payload",
    "is_attribute_path",
    "split_attribute_path",
]
