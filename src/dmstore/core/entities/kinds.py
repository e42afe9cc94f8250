"""Entities - Entity kind schema.

An ``EntityKind`` describes one entity table: which document holds it, the
name of its entities root, the tag of each entity, and optionally which
field names are allowed and which must hold unique values. One
``EntityStore`` serves any kind; kinds are configuration, not subclasses.
"""

from pydantic import BaseModel, Field, field_validator

from dmstore.core.exceptions import ValidationError
from dmstore.core.xupdate.paths import DEFAULT_WRAPPER, validate_field_path, validate_name


class EntityKind(BaseModel):
    """Schema of one kind of entity stored in a document.

    Attributes:
        id: Registry identifier (e.g. "users").
        document: Name of the document holding the entities.
        entities_root: Name of the entities-root element.
        tag: Element name of each entity.
        fields: Allowed field names. Empty means any field is allowed.
        unique: Fields whose values must be unique across entities.
        wrapper: Name of the document wrapper element.
    """

    id: str = Field(description="Registry identifier")
    document: str = Field(description="Document holding the entities")
    entities_root: str = Field(description="Entities-root element name")
    tag: str = Field(description="Element name of each entity")
    fields: tuple[str, ...] = Field(default=(), description="Allowed fields, empty for any")
    unique: tuple[str, ...] = Field(default=(), description="Fields with unique values")
    wrapper: str = Field(default=DEFAULT_WRAPPER, description="Document wrapper element name")

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("entities_root", "tag", "wrapper")
    @classmethod
    def _check_name(cls, value: str) -> str:
        try:
            return validate_name(value)
        except ValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator("fields", "unique")
    @classmethod
    def _check_fields(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        try:
            for field in value:
                validate_field_path(field)
        except ValidationError as e:
            raise ValueError(str(e)) from e
        return value

    def allows(self, field: str) -> bool:
        """Return True if ``field`` (or its top-level segment) is declared."""
        if not self.fields:
            return True
        return field.split("/", 1)[0] in self.fields


#: Kinds of the classic system documents, keyed by registry id.
DEFAULT_KINDS: dict[str, EntityKind] = {
    kind.id: kind
    for kind in (
        EntityKind(
            id="users",
            document="DMSUsers.xml",
            entities_root="users",
            tag="user",
            unique=("username",),
        ),
        EntityKind(
            id="groups",
            document="DMSGroups.xml",
            entities_root="groups",
            tag="group",
            unique=("groupname",),
        ),
        EntityKind(
            id="tags",
            document="DMSTags.xml",
            entities_root="tags",
            tag="tag",
            unique=("xpath",),
        ),
        EntityKind(
            id="queries",
            document="DMSXQueries.xml",
            entities_root="queries",
            tag="query",
        ),
        EntityKind(
            id="collections",
            document="DMSCollections.xml",
            entities_root="collections",
            tag="collection",
            unique=("name",),
        ),
        EntityKind(
            id="admins",
            document="DMSAdmins.xml",
            entities_root="admins",
            tag="admin",
        ),
    )
}


__all__ = ["EntityKind", "DEFAULT_KINDS"]
