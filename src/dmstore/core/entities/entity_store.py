"""Entities - EntityStore.

CRUD over the entities of one document, composed from the path builders,
the update fragment builders and a ``DocumentSession``.

A store document always has the shape::

    <DMS>
      <users>
        <user id="1" level="admin">
          <username>alice</username>
          <email>a@x.com</email>
        </user>
      </users>
    </DMS>

Every call opens the document, performs its queries/mutations and closes
the handle again; nothing is cached between calls.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any
from xml.sax.saxutils import escape, quoteattr

from lxml import etree

from dmstore.core.entities.allocator import IdentifierAllocator
from dmstore.core.entities.kinds import EntityKind
from dmstore.core.exceptions import (
    AlreadyExists,
    AmbiguousMatch,
    MalformedDocument,
    NotFound,
    NotSupported,
    ValidationError,
)
from dmstore.core.sessions.session import DocumentFactory, DocumentSession, opened
from dmstore.core.xupdate import fragments
from dmstore.core.xupdate.paths import (
    ID_ATTRIBUTE,
    all_ids,
    attribute_of,
    child_by_id,
    child_ids,
    entities_root,
    entity_by_id,
    entity_by_predicate,
    field_of,
    field_with_value,
    validate_field_path,
    validate_id,
    validate_name,
    xpath_literal,
)

logger = logging.getLogger(__name__)


class Markup(str):
    """A field value stored verbatim as child markup instead of escaped text.

    Example:
        >>> store.set_field(1, "profile", Markup("<name>Alice</name><age>30</age>"))
    """

    __slots__ = ()


type FieldValues = Mapping[str, Any] | Iterable[tuple[str, Any]]


# =============================================================================
# MARKUP HELPERS
# =============================================================================


def _payload(value: Any) -> str:
    if isinstance(value, Markup):
        return str(value)
    return fragments.text_payload(str(value))


def _element(path: str, value: Any) -> str:
    """Build ``<a><b>value</b></a>`` for the field path ``a/b``."""
    markup = _payload(value)
    for segment in reversed(path.split("/")):
        markup = f"<{segment}>{markup}</{segment}>"
    return markup


def _pairs(fields: FieldValues | None) -> list[tuple[str, Any]]:
    if not fields:
        return []
    items = fields.items() if isinstance(fields, Mapping) else fields
    return [(name, value) for name, value in items]


def _parse(markup: str) -> etree._Element:
    return etree.fromstring(markup.encode("utf-8"))


def _text(element: etree._Element) -> str:
    return "".join(element.xpath("text()"))


def _inner_markup(element: etree._Element) -> str:
    children = "".join(etree.tostring(child, encoding="unicode") for child in element)
    return escape(element.text or "") + children


def _item_path(container: str, item: str) -> str:
    return f"{validate_field_path(container)}/{validate_name(item, 'field')}"


def _field_map(element: etree._Element) -> dict[str, str]:
    values: dict[str, str] = {}
    for child in element:
        if isinstance(child.tag, str):
            values.setdefault(child.tag, _text(child))
    return values


# =============================================================================
# ENTITY STORE
# =============================================================================


class EntityStore:
    """Entity and field CRUD for one ``EntityKind``.

    The store is parameterized by the kind (document, entities root, tag and
    field schema); the same class serves users, groups, tags and any other
    kind declared in configuration.

    Note:
        ``create`` is two round trips (allocate, then append) and is not
        atomic. Concurrent creators on the same document may obtain the same
        id; callers that need strict uniqueness serialize ``create`` calls.

    Example:
        >>> store = EntityStore(DEFAULT_KINDS["users"], session)
        >>> user_id = store.create({"username": "alice"})
        >>> store.add_field(user_id, "email", "a@x.com")
        >>> store.get_field(user_id, "email")
        'a@x.com'
    """

    def __init__(
        self,
        kind: EntityKind,
        session: DocumentSession,
        allocator: IdentifierAllocator | None = None,
    ):
        """Initialize the store.

        Args:
            kind: Schema of the entities handled by this store.
            session: Session used to reach the document.
            allocator: Identifier allocator; a default one is created if omitted.
        """
        self._kind = kind
        self._session = session
        self._allocator = allocator or IdentifierAllocator()
        self._root = entities_root(kind.wrapper)
        logger.debug(
            "EntityStore '%s' bound to document '%s' on session '%s'.",
            kind.id,
            kind.document,
            session.name,
        )

    @property
    def kind(self) -> EntityKind:
        return self._kind

    @property
    def session(self) -> DocumentSession:
        return self._session

    @property
    def document(self) -> str:
        return self._kind.document

    def __repr__(self) -> str:
        return f"EntityStore(kind={self._kind.id!r}, document={self._kind.document!r})"

    # =========================================================================
    # DOCUMENT
    # =========================================================================

    def bootstrap(self) -> bool:
        """Create the store document with an empty entities root if it is missing.

        Returns:
            True if the document was created, False if it already existed.

        Raises:
            NotSupported: If the session cannot create documents.
        """
        if not isinstance(self._session, DocumentFactory):
            raise NotSupported("bootstrap", self._session.name, "session cannot create documents")
        if self._session.has_document(self.document):
            return False
        self._session.create_document(self.document, self._kind.entities_root, self._kind.wrapper)
        logger.info("Document '%s' bootstrapped for kind '%s'.", self.document, self._kind.id)
        return True

    def check_shape(self) -> None:
        """Verify the document is ``<wrapper><entities_root>...</entities_root></wrapper>``.

        Raises:
            MalformedDocument: If the wrapper is missing, holds more or fewer
                than one element child, or that child is not the entities root.
        """
        wrapper = self._kind.wrapper
        with opened(self._session, self.document) as handle:
            count = self._session.query(handle, f"count(/{wrapper}/*)")
            names = self._session.query(handle, f"name(/{wrapper}/*[1])")

        found = count[0] if count else "0"
        if found != "1":
            raise MalformedDocument(
                self.document,
                f"wrapper '{wrapper}' must have exactly one element child, found {found}",
            )
        if not names or names[0] != self._kind.entities_root:
            raise MalformedDocument(
                self.document,
                f"expected entities root '{self._kind.entities_root}', "
                f"found '{names[0] if names else ''}'",
            )

    # =========================================================================
    # ENTITY LIFECYCLE
    # =========================================================================

    def create(
        self,
        fields: FieldValues | None = None,
        attributes: Mapping[str, Any] | None = None,
        *,
        tag: str | None = None,
    ) -> int:
        """Create a new entity and return its id.

        Args:
            fields: Field name to value, in the order the fields are stored.
                Values are stored as text unless wrapped in ``Markup``.
            attributes: Extra attributes for the entity element.
            tag: Element name of the entity; defaults to the kind's tag.

        Returns:
            The allocated id.

        Raises:
            ValidationError: On invalid names or fields outside the schema.
            AlreadyExists: If a unique field value is already taken.
        """
        tag = validate_name(tag or self._kind.tag, "tag")
        pairs = [(self._check_field(name), value) for name, value in _pairs(fields)]
        attribute_markup = self._attribute_markup(attributes)
        children = "".join(_element(name, value) for name, value in pairs)

        with opened(self._session, self.document) as handle:
            for name, value in pairs:
                if name not in self._kind.unique:
                    continue
                selector = entity_by_predicate(tag, name, str(value), self._kind.wrapper)
                if self._session.exists(handle, selector):
                    raise AlreadyExists(
                        "entity", field=name, selector=selector, document=self.document
                    )

            new_id = self._allocator.next(self._session, handle, all_ids(self._kind.wrapper))
            markup = f'<{tag} {ID_ATTRIBUTE}="{new_id}"{attribute_markup}>{children}</{tag}>'
            self._session.mutate(handle, fragments.append(self._root, markup))

        logger.info("Entity %d created in '%s'.", new_id, self.document)
        return new_id

    def remove(self, entity_id: int | str) -> None:
        """Remove an entity.

        Raises:
            NotFound: If no entity has this id.
        """
        selector = self._entity(entity_id)
        with opened(self._session, self.document) as handle:
            modified = self._session.mutate(handle, fragments.remove(selector))
        if modified == 0:
            raise NotFound("entity", entity_id=entity_id, document=self.document)
        logger.info("Entity %s removed from '%s'.", entity_id, self.document)

    def remove_where(self, field: str, value: Any) -> int:
        """Remove the single entity whose ``field`` equals ``value``.

        Returns:
            The id of the removed entity.

        Raises:
            NotFound: If no entity matches.
            AmbiguousMatch: If several entities match.
        """
        entity_id = self.find(field, value)
        if entity_id is None:
            raise NotFound(
                "entity",
                field=field,
                selector=entity_by_predicate(self._kind.tag, field, str(value), self._kind.wrapper),
                document=self.document,
            )
        self.remove(entity_id)
        return entity_id

    # =========================================================================
    # READ SURFACE
    # =========================================================================

    def list_ids(self) -> list[int]:
        """Return the ids of every entity, in document order."""
        with opened(self._session, self.document) as handle:
            values = self._session.query(handle, all_ids(self._kind.wrapper))
        return self._ids(values, all_ids(self._kind.wrapper))

    def exists(self, expression: str) -> bool:
        """Return True if ``expression`` matches anything in the document."""
        with opened(self._session, self.document) as handle:
            return self._session.exists(handle, expression)

    def exists_id(self, entity_id: int | str) -> bool:
        return self.exists(self._entity(entity_id))

    def find(self, field: str, value: Any) -> int | None:
        """Return the id of the entity whose ``field`` equals ``value``.

        Returns:
            The id, or None if nothing matches.

        Raises:
            AmbiguousMatch: If more than one entity matches.
        """
        selector = entity_by_predicate(self._kind.tag, field, str(value), self._kind.wrapper)
        with opened(self._session, self.document) as handle:
            ids = self._session.query(handle, f"{selector}/@{ID_ATTRIBUTE}")
        if not ids:
            return None
        if len(ids) > 1:
            raise AmbiguousMatch(selector, len(ids))
        return self._ids(ids, selector)[0]

    def get(self, entity_id: int | str) -> dict[str, str]:
        """Return the text of every direct field of an entity.

        When a field name repeats, the first occurrence wins.

        Raises:
            NotFound: If the entity does not exist.
        """
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, self._entity(entity_id))
        if not found:
            raise NotFound("entity", entity_id=entity_id, document=self.document)
        return _field_map(_parse(found[0]))

    def field_names(self, entity_id: int | str) -> list[str]:
        """Return the names of the direct fields of an entity, in document order."""
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, self._entity(entity_id))
        if not found:
            raise NotFound("entity", entity_id=entity_id, document=self.document)
        return [child.tag for child in _parse(found[0]) if isinstance(child.tag, str)]

    def values_of(self, field: str, where: Mapping[str, Any] | None = None) -> list[str]:
        """Return the text of ``field`` for every entity matching ``where``.

        Args:
            field: Field whose values are returned.
            where: Optional field name to required value; all must match.

        Example:
            >>> store.values_of("groupname", where={"owner": "alice"})
            ['staff', 'editors']
        """
        field = validate_field_path(field)
        conditions = " and ".join(
            f"{validate_field_path(name)}={xpath_literal(str(value))}"
            for name, value in (where or {}).items()
        )
        step = f"{self._kind.tag}[{conditions}]" if conditions else self._kind.tag
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, f"{self._root}/{step}/{field}")
        return [_text(_parse(markup)) for markup in found]

    def mapping(self, field: str) -> dict[int, str | None]:
        """Return ``{id: value of field}`` for every entity of the kind.

        Entities without the field map to None.
        """
        field = validate_field_path(field)
        selector = f"{self._root}/{self._kind.tag}"
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, selector)
        result: dict[int, str | None] = {}
        for markup in found:
            element = _parse(markup)
            match = element.find(field)
            (entity_id,) = self._ids([element.get(ID_ATTRIBUTE, "")], selector)
            result[entity_id] = None if match is None else _text(match)
        return result

    # =========================================================================
    # FIELD LIFECYCLE
    # =========================================================================

    def add_field(self, entity_id: int | str, name: str, value: Any) -> None:
        """Append a new field to an entity.

        For a nested path (``info/city``) the parent field must exist.

        Raises:
            NotFound: If the entity (or the parent field) does not exist.
            AlreadyExists: If the field is already present.
        """
        name = self._check_field(name)
        entity = self._entity(entity_id)
        target = field_of(entity, name)
        parent, _, leaf = name.rpartition("/")
        destination = field_of(entity, parent) if parent else entity

        with opened(self._session, self.document) as handle:
            self._require_entity(handle, entity_id)
            if self._session.exists(handle, target):
                raise AlreadyExists(
                    "field", entity_id=entity_id, field=name, document=self.document
                )
            if parent and not self._session.exists(handle, destination):
                raise NotFound("field", entity_id=entity_id, field=parent, document=self.document)
            self._session.mutate(handle, fragments.append(destination, _element(leaf, value)))
        logger.debug("Field '%s' added to entity %s in '%s'.", name, entity_id, self.document)

    def remove_field(self, entity_id: int | str, name: str) -> None:
        """Remove a field (every occurrence of it) from an entity.

        Raises:
            NotFound: If the entity or the field does not exist.
        """
        name = validate_field_path(name)
        target = field_of(self._entity(entity_id), name)
        with opened(self._session, self.document) as handle:
            if self._session.mutate(handle, fragments.remove(target)) == 0:
                self._require_entity(handle, entity_id)
                raise NotFound("field", entity_id=entity_id, field=name, document=self.document)
        logger.debug("Field '%s' removed from entity %s in '%s'.", name, entity_id, self.document)

    def get_field(
        self,
        entity_id: int | str,
        name: str,
        default: str | None = None,
        *,
        markup: bool = False,
    ) -> str | None:
        """Return the value of a field.

        Args:
            entity_id: Entity id.
            name: Field name or nested path.
            default: Returned when the entity has no such field.
            markup: Return the inner markup instead of the direct text.

        Returns:
            The direct text nodes of the first matching field joined
            together ("" for an empty field), or ``default``.

        Raises:
            NotFound: If the entity does not exist.
        """
        name = validate_field_path(name)
        target = field_of(self._entity(entity_id), name)
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, target)
            if not found:
                self._require_entity(handle, entity_id)
                return default
        element = _parse(found[0])
        return _inner_markup(element) if markup else _text(element)

    def set_field(self, entity_id: int | str, name: str, value: Any) -> None:
        """Replace the content of an existing field.

        An empty value leaves the field present and empty.

        Raises:
            NotFound: If the entity or the field does not exist.
        """
        name = validate_field_path(name)
        target = field_of(self._entity(entity_id), name)
        with opened(self._session, self.document) as handle:
            if not self._session.exists(handle, target):
                self._require_entity(handle, entity_id)
                raise NotFound("field", entity_id=entity_id, field=name, document=self.document)
            self._session.mutate(handle, fragments.update(target, _payload(value)))
        logger.debug("Field '%s' of entity %s set in '%s'.", name, entity_id, self.document)

    def has_field(self, entity_id: int | str, name: str) -> bool:
        target = field_of(self._entity(entity_id), validate_field_path(name))
        with opened(self._session, self.document) as handle:
            return self._session.exists(handle, target)

    def rename_field(self, entity_id: int | str, name: str, new_name: str) -> None:
        """Rename a field, keeping its content and position.

        Raises:
            NotFound: If the entity or the field does not exist.
            AlreadyExists: If a sibling named ``new_name`` exists.
        """
        name = validate_field_path(name)
        new_name = validate_name(new_name, "field")
        parent, _, _ = name.rpartition("/")
        renamed = f"{parent}/{new_name}" if parent else new_name
        self._check_field(renamed)
        entity = self._entity(entity_id)

        with opened(self._session, self.document) as handle:
            if not self._session.exists(handle, field_of(entity, name)):
                self._require_entity(handle, entity_id)
                raise NotFound("field", entity_id=entity_id, field=name, document=self.document)
            if self._session.exists(handle, field_of(entity, renamed)):
                raise AlreadyExists(
                    "field", entity_id=entity_id, field=renamed, document=self.document
                )
            self._session.mutate(handle, fragments.rename(field_of(entity, name), new_name))
        logger.debug("Field '%s' of entity %s renamed to '%s'.", name, entity_id, new_name)

    # =========================================================================
    # MULTI-VALUED FIELDS
    # =========================================================================

    def values(self, entity_id: int | str, container: str, item: str) -> list[str]:
        """Return the values of the repeated ``item`` fields inside ``container``.

        Example:
            >>> users.values(1, "groups", "group")
            ['staff', 'editors']

        Returns:
            The text of each occurrence, in document order; empty when the
            container is missing.

        Raises:
            NotFound: If the entity does not exist.
        """
        target = field_of(self._entity(entity_id), _item_path(container, item))
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, target)
            if not found:
                self._require_entity(handle, entity_id)
        return [_text(_parse(markup)) for markup in found]

    def has_value(self, entity_id: int | str, container: str, item: str, value: Any) -> bool:
        target = field_with_value(self._entity(entity_id), _item_path(container, item), str(value))
        with opened(self._session, self.document) as handle:
            return self._session.exists(handle, target)

    def add_value(self, entity_id: int | str, container: str, item: str, value: Any) -> None:
        """Append ``<item>value</item>`` to ``container``, creating the container when missing.

        Values are plain text and form a set: each occurs at most once.

        Raises:
            NotFound: If the entity does not exist.
            AlreadyExists: If ``value`` is already present.
        """
        container = self._check_field(container)
        path = _item_path(container, item)
        entity = self._entity(entity_id)
        target = field_with_value(entity, path, str(value))
        markup = f"<{item}>{fragments.text_payload(str(value))}</{item}>"

        with opened(self._session, self.document) as handle:
            self._require_entity(handle, entity_id)
            if self._session.exists(handle, target):
                raise AlreadyExists(
                    "value", entity_id=entity_id, field=path, selector=target, document=self.document
                )
            self._ensure_container(handle, entity, container)
            self._session.mutate(handle, fragments.append(field_of(entity, container), markup))
        logger.debug("Value added to '%s' of entity %s in '%s'.", path, entity_id, self.document)

    def remove_value(self, entity_id: int | str, container: str, item: str, value: Any) -> None:
        """Remove ``value`` from the repeated ``item`` fields in ``container``.

        Raises:
            NotFound: If the entity does not exist or does not hold ``value``.
        """
        path = _item_path(container, item)
        target = field_with_value(self._entity(entity_id), path, str(value))
        with opened(self._session, self.document) as handle:
            if self._session.mutate(handle, fragments.remove(target)) == 0:
                self._require_entity(handle, entity_id)
                raise NotFound(
                    "value", entity_id=entity_id, field=path, selector=target, document=self.document
                )
        logger.debug("Value removed from '%s' of entity %s in '%s'.", path, entity_id, self.document)

    # =========================================================================
    # ATTRIBUTES
    # =========================================================================

    def get_attribute(
        self,
        entity_id: int | str,
        name: str,
        default: str | None = None,
    ) -> str | None:
        """Return an attribute of an entity, or ``default`` if it is not set.

        Raises:
            NotFound: If the entity does not exist.
        """
        target = attribute_of(self._entity(entity_id), name)
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, target)
            if not found:
                self._require_entity(handle, entity_id)
                return default
        return found[0]

    def set_attribute(self, entity_id: int | str, name: str, value: Any) -> None:
        """Set (or add) an attribute on an entity. The id attribute is read-only.

        Raises:
            ValidationError: If ``name`` is the id attribute.
            NotFound: If the entity does not exist.
        """
        self._check_attribute(name)
        entity = self._entity(entity_id)
        target = attribute_of(entity, name)
        with opened(self._session, self.document) as handle:
            self._require_entity(handle, entity_id)
            if self._session.exists(handle, target):
                fragment = fragments.update(target, fragments.text_payload(str(value)))
            else:
                fragment = fragments.add_attribute(entity, name, str(value))
            self._session.mutate(handle, fragment)

    def has_attribute(self, entity_id: int | str, name: str) -> bool:
        target = attribute_of(self._entity(entity_id), name)
        with opened(self._session, self.document) as handle:
            return self._session.exists(handle, target)

    def remove_attribute(self, entity_id: int | str, name: str) -> None:
        """Remove an attribute from an entity.

        Raises:
            ValidationError: If ``name`` is the id attribute.
            NotFound: If the entity or the attribute does not exist.
        """
        self._check_attribute(name)
        target = attribute_of(self._entity(entity_id), name)
        with opened(self._session, self.document) as handle:
            if self._session.mutate(handle, fragments.remove(target)) == 0:
                self._require_entity(handle, entity_id)
                raise NotFound("attribute", entity_id=entity_id, field=name, document=self.document)

    # =========================================================================
    # NESTED CHILD COLLECTIONS
    # =========================================================================

    def add_child(
        self,
        entity_id: int | str,
        container: str,
        tag: str,
        fields: FieldValues | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> int:
        """Append an id-carrying child to ``container`` inside an entity.

        The container field is created when missing. Child ids are allocated
        per container, independently of entity ids.

        Example:
            >>> queries.add_child(3, "inputs", "input", {"name": "year"}, {"type": "int"})
            1

        Returns:
            The allocated child id.
        """
        container = self._check_field(container)
        tag = validate_name(tag, "tag")
        children = "".join(
            _element(validate_field_path(name), value) for name, value in _pairs(fields)
        )
        attribute_markup = self._attribute_markup(attributes)
        entity = self._entity(entity_id)
        destination = field_of(entity, container)

        with opened(self._session, self.document) as handle:
            self._require_entity(handle, entity_id)
            self._ensure_container(handle, entity, container)
            child_id = self._allocator.next(self._session, handle, child_ids(entity, container))
            markup = f'<{tag} {ID_ATTRIBUTE}="{child_id}"{attribute_markup}>{children}</{tag}>'
            self._session.mutate(handle, fragments.append(destination, markup))

        logger.debug(
            "Child %d added to '%s' of entity %s in '%s'.",
            child_id,
            container,
            entity_id,
            self.document,
        )
        return child_id

    def child_ids(self, entity_id: int | str, container: str) -> list[int]:
        """Return the ids of the children in ``container``, in document order."""
        selector = child_ids(self._entity(entity_id), validate_field_path(container))
        with opened(self._session, self.document) as handle:
            values = self._session.query(handle, selector)
        return self._ids(values, selector)

    def child_fields(self, entity_id: int | str, container: str, child_id: int | str) -> dict[str, str]:
        """Return the text of every direct field of a nested child.

        Raises:
            NotFound: If the child does not exist.
        """
        selector = child_by_id(self._entity(entity_id), validate_field_path(container), child_id)
        with opened(self._session, self.document) as handle:
            found = self._session.query(handle, selector)
        if not found:
            raise NotFound("child", entity_id=entity_id, selector=selector, document=self.document)
        return _field_map(_parse(found[0]))

    def remove_child(self, entity_id: int | str, container: str, child_id: int | str) -> None:
        """Remove a nested child.

        Raises:
            NotFound: If the child does not exist.
        """
        selector = child_by_id(self._entity(entity_id), validate_field_path(container), child_id)
        with opened(self._session, self.document) as handle:
            if self._session.mutate(handle, fragments.remove(selector)) == 0:
                raise NotFound(
                    "child", entity_id=entity_id, selector=selector, document=self.document
                )

    def move_child(
        self,
        entity_id: int | str,
        container: str,
        child_id: int | str,
        before: int | str | None = None,
    ) -> None:
        """Reorder a nested child.

        Args:
            entity_id: Entity id.
            container: Container field holding the children.
            child_id: Child to move.
            before: Child to move in front of; None moves it to the end.

        Raises:
            NotFound: If either child does not exist.
        """
        container = validate_field_path(container)
        entity = self._entity(entity_id)
        source = child_by_id(entity, container, child_id)
        if before is not None and validate_id(before) == validate_id(child_id):
            return
        destination = (
            field_of(entity, container)
            if before is None
            else child_by_id(entity, container, before)
        )

        with opened(self._session, self.document) as handle:
            for selector in (source, destination):
                if not self._session.exists(handle, selector):
                    raise NotFound(
                        "child", entity_id=entity_id, selector=selector, document=self.document
                    )
            if before is None:
                fragment = fragments.move_inside(source, destination)
            else:
                fragment = fragments.move_before(source, destination)
            self._session.mutate(handle, fragment)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _ids(self, values: list[str], selector: str) -> list[int]:
        try:
            return [int(value) for value in values]
        except ValueError:
            raise MalformedDocument(
                self.document, f"non-numeric id found under {selector!r}: {values!r}"
            ) from None

    def _entity(self, entity_id: int | str) -> str:
        return entity_by_id(entity_id, self._kind.wrapper)

    def _ensure_container(self, handle: Any, entity: str, container: str) -> None:
        if self._session.exists(handle, field_of(entity, container)):
            return
        parent, _, leaf = container.rpartition("/")
        target = field_of(entity, parent) if parent else entity
        self._session.mutate(handle, fragments.append(target, f"<{leaf}/>"))

    def _require_entity(self, handle: Any, entity_id: int | str) -> None:
        if not self._session.exists(handle, self._entity(entity_id)):
            raise NotFound("entity", entity_id=entity_id, document=self.document)

    def _check_field(self, name: str) -> str:
        name = validate_field_path(name)
        if not self._kind.allows(name):
            raise ValidationError(
                f"Field is not declared by kind '{self._kind.id}'", field=name
            )
        return name

    def _check_attribute(self, name: str) -> str:
        name = validate_name(name, "attribute")
        if name == ID_ATTRIBUTE:
            raise ValidationError("The id attribute is managed by the store", field=name)
        return name

    def _attribute_markup(self, attributes: Mapping[str, Any] | None) -> str:
        return "".join(
            f" {self._check_attribute(name)}={quoteattr(str(value))}"
            for name, value in (attributes or {}).items()
        )


__all__ = ["EntityStore", "Markup", "FieldValues"]
