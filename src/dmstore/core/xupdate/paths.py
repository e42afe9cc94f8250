"""XUpdate - Path expression builders.

Pure functions composing the XPath expressions that address the entities
root of a document, single entities (by id or by a field predicate), and
fields or attributes of an entity.

Every document handled by the store has the shape::

    <DMS>
      <users>                      <- entities root, always the first child
        <user id="1">...</user>
        <user id="2">...</user>
      </users>
    </DMS>

Caller-supplied values embedded in predicates are quoted with
``xpath_literal()``; caller-supplied names must be valid XML names.
"""

import re

from dmstore.core.exceptions import ValidationError

#: Name of the top-level wrapper element of every store document.
DEFAULT_WRAPPER = "DMS"

#: Name of the attribute carrying the entity identifier.
ID_ATTRIBUTE = "id"

_NAME_RE = re.compile(r"^[^\W\d][\w.\-]*$")


# =============================================================================
# INPUT CHECKS
# =============================================================================


def validate_name(name: str, what: str = "name") -> str:
    """Check that ``name`` can be used as an element or attribute name.

    Args:
        name: The candidate name.
        what: What the name is for, used in the error message.

    Returns:
        The name unchanged.

    Raises:
        ValidationError: If the name is not a valid (unprefixed) XML name.
    """
    if not isinstance(name, str) or not _NAME_RE.match(name) or name.lower().startswith("xml"):
        raise ValidationError(f"Invalid {what}", field=what, value=name)
    return name


def validate_field_path(field: str) -> str:
    """Check a field name or a slash-separated relative field path.

    ``"email"`` and ``"info/country"`` are both accepted.

    Raises:
        ValidationError: If any segment is not a valid XML name.
    """
    if not isinstance(field, str) or not field:
        raise ValidationError("Field path must be a non-empty string", field="field", value=field)
    for segment in field.split("/"):
        validate_name(segment, "field")
    return field


def validate_id(entity_id: int | str) -> int:
    """Normalize an entity identifier to a non-negative int.

    Raises:
        ValidationError: If the id is not a non-negative integer.
    """
    if isinstance(entity_id, bool):
        raise ValidationError("Entity id must be an integer", field="id", value=entity_id)
    if isinstance(entity_id, str):
        entity_id = entity_id.strip()
        if not (entity_id.isascii() and entity_id.isdigit()):
            raise ValidationError("Entity id must be an integer", field="id", value=entity_id)
        entity_id = int(entity_id)
    if not isinstance(entity_id, int) or entity_id < 0:
        raise ValidationError("Entity id must be a non-negative integer", field="id", value=entity_id)
    return entity_id


def xpath_literal(value: str) -> str:
    """Quote ``value`` as an XPath string literal.

    XPath 1.0 has no escape sequence inside literals, so a value holding
    both quote characters is split and rebuilt with ``concat()``.

    Example:
        >>> xpath_literal("it's")
        '"it\\'s"'
    """
    value = str(value)
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    pieces = value.split("'")
    joined = ", \"'\", ".join(f"'{piece}'" for piece in pieces)
    return f"concat({joined})"


# =============================================================================
# SELECTORS
# =============================================================================


def entities_root(wrapper: str = DEFAULT_WRAPPER) -> str:
    """Select the sole entities-root child of the document wrapper."""
    return f"/{validate_name(wrapper, 'wrapper')}/*[1]"


def entity_by_id(entity_id: int | str, wrapper: str = DEFAULT_WRAPPER) -> str:
    """Select the entity whose id attribute equals ``entity_id``."""
    entity_id = validate_id(entity_id)
    return f"{entities_root(wrapper)}/*[@{ID_ATTRIBUTE}='{entity_id}']"


def entity_by_predicate(
    tag: str | None,
    field: str,
    value: str,
    wrapper: str = DEFAULT_WRAPPER,
) -> str:
    """Select entities of ``tag`` whose child ``field`` text equals ``value``.

    Args:
        tag: Entity tag, or None for any tag.
        field: Field name or relative field path.
        value: Text the field must equal.
        wrapper: Document wrapper name.
    """
    step = validate_name(tag, "tag") if tag else "*"
    return f"{entities_root(wrapper)}/{step}[{validate_field_path(field)}={xpath_literal(value)}]"


def entity_by_attribute(
    attribute: str,
    value: str,
    wrapper: str = DEFAULT_WRAPPER,
) -> str:
    """Select entities carrying ``attribute`` with the given value."""
    name = validate_name(attribute, "attribute")
    return f"{entities_root(wrapper)}/*[@{name}={xpath_literal(value)}]"


def field_of(entity_expr: str, field: str) -> str:
    """Select a field (or nested field path) of the entities matched by ``entity_expr``."""
    return f"{entity_expr}/{validate_field_path(field)}"


def field_with_value(entity_expr: str, field: str, value: str) -> str:
    """Select the occurrences of a repeated ``field`` whose string value equals ``value``."""
    return f"{field_of(entity_expr, field)}[.={xpath_literal(value)}]"


def attribute_of(entity_expr: str, attribute: str) -> str:
    """Select an attribute of the nodes matched by ``entity_expr``."""
    return f"{entity_expr}/@{validate_name(attribute, 'attribute')}"


def all_ids(wrapper: str = DEFAULT_WRAPPER) -> str:
    """Select the id attribute of every entity in the document."""
    return f"{entities_root(wrapper)}/*/@{ID_ATTRIBUTE}"


def child_by_id(entity_expr: str, container: str, child_id: int | str) -> str:
    """Select a nested, id-carrying child inside ``container`` of an entity."""
    child_id = validate_id(child_id)
    return f"{field_of(entity_expr, container)}/*[@{ID_ATTRIBUTE}='{child_id}']"


def child_ids(entity_expr: str, container: str) -> str:
    """Select the id attributes of every child inside ``container`` of an entity."""
    return f"{field_of(entity_expr, container)}/*/@{ID_ATTRIBUTE}"


__all__ = [
    "DEFAULT_WRAPPER",
    "ID_ATTRIBUTE",
    "validate_name",
    "validate_field_path",
    "validate_id",
    "xpath_literal",
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
]
