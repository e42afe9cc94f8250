"""DMStore - Store Exceptions.

Custom exceptions for entity store operations, providing clear error
semantics for entity CRUD, fragment execution, and backend interactions.

Expected registry states (unknown kind, duplicate registration) are not
exceptions; they are returned as Result objects - see dto/dewey_dto.py.
"""

from typing import Any


class StoreError(Exception):
    """Base exception for all entity store errors."""

    pass


def _context_info(
    entity_id: Any = None,
    field: str | None = None,
    selector: str | None = None,
    document: str | None = None,
) -> str:
    parts = []
    if entity_id is not None:
        parts.append(f"id={entity_id!r}")
    if field:
        parts.append(f"field={field!r}")
    if document:
        parts.append(f"document={document!r}")
    if selector:
        parts.append(f"selector={selector!r}")
    return f" ({', '.join(parts)})" if parts else ""


class NotFound(StoreError):
    """Raised when an entity, field, or document does not exist.

    Attributes:
        what: Short description of the missing thing ("entity", "field", ...).
        entity_id: Optional entity identifier.
        field: Optional field name.
        selector: Optional path expression that matched nothing.
        document: Optional document name.
    """

    def __init__(
        self,
        what: str,
        *,
        entity_id: Any = None,
        field: str | None = None,
        selector: str | None = None,
        document: str | None = None,
    ):
        """Initialize NotFound.

        Args:
            what: Description of the missing item.
            entity_id: Optional entity identifier.
            field: Optional field name.
            selector: Optional selector that matched nothing.
            document: Optional document name.
        """
        self.what = what
        self.entity_id = entity_id
        self.field = field
        self.selector = selector
        self.document = document
        info = _context_info(entity_id, field, selector, document)
        super().__init__(f"{what.capitalize()} not found{info}.")


class AlreadyExists(StoreError):
    """Raised when a create/add targets a name or predicate already occupied.

    Attributes:
        what: Short description of the occupied thing ("field", "entity", ...).
        entity_id: Optional entity identifier.
        field: Optional field name.
        selector: Optional path expression that already matches.
        document: Optional document name.
    """

    def __init__(
        self,
        what: str,
        *,
        entity_id: Any = None,
        field: str | None = None,
        selector: str | None = None,
        document: str | None = None,
    ):
        """Initialize AlreadyExists.

        Args:
            what: Description of the existing item.
            entity_id: Optional entity identifier.
            field: Optional field name.
            selector: Optional selector that already matches.
            document: Optional document name.
        """
        self.what = what
        self.entity_id = entity_id
        self.field = field
        self.selector = selector
        self.document = document
        info = _context_info(entity_id, field, selector, document)
        super().__init__(f"{what.capitalize()} already exists{info}.")


class ValidationError(StoreError):
    """Raised when caller input cannot be used to build a selector or payload.

    This exception should be raised when:
    - A tag, field, or attribute name is not a valid XML name.
    - An entity id is not a non-negative integer.
    - A field is not declared by the entity kind schema.

    Attributes:
        details: Description of what validation failed.
        field: Optional name of the field that failed validation.
        value: Optional value that failed validation.
    """

    def __init__(
        self,
        details: str,
        field: str | None = None,
        value: Any = None,
    ):
        """Initialize ValidationError.

        Args:
            details: Human-readable description of the validation failure.
            field: Optional field name associated with the error.
            value: Optional invalid value.
        """
        self.details = details
        self.field = field
        self.value = value

        field_info = f" (field={field!r})" if field else ""
        value_info = f" [value={value!r}]" if value is not None else ""
        super().__init__(f"Validation error{field_info}: {details}{value_info}")


class NotSupported(StoreError):
    """Raised when a session does not offer a requested capability.

    For example, bootstrapping a document through a session that cannot
    create documents.

    Attributes:
        feature: The feature or operation that is not supported.
        session: Optional name of the session.
        details: Optional additional context.
    """

    def __init__(
        self,
        feature: str,
        session: str | None = None,
        details: str | None = None,
    ):
        """Initialize NotSupported.

        Args:
            feature: The unsupported feature or operation.
            session: Optional name of the session.
            details: Optional extra details.
        """
        self.feature = feature
        self.session = session
        self.details = details

        session_info = f" by session '{session}'" if session else ""
        detail_info = f": {details}" if details else ""
        super().__init__(f"Feature '{feature}' is not supported{session_info}{detail_info}.")


class AmbiguousMatch(StoreError):
    """Raised when a predicate lookup that must be unique matches several entities.

    Attributes:
        selector: The predicate selector.
        count: Number of matching entities.
    """

    def __init__(self, selector: str, count: int):
        """Initialize AmbiguousMatch.

        Args:
            selector: The predicate selector.
            count: Number of entities it matched.
        """
        self.selector = selector
        self.count = count
        super().__init__(f"Selector {selector!r} matched {count} entities, expected at most one.")


class MalformedFragment(StoreError):
    """Raised when the backend rejects an update fragment or a path expression.

    Attributes:
        details: Description of the rejection.
        fragment: Optional fragment or expression text that was rejected.
        cause: Optional original exception from the backend.
    """

    def __init__(
        self,
        details: str,
        fragment: str | None = None,
        cause: BaseException | None = None,
    ):
        """Initialize MalformedFragment.

        Args:
            details: Description of the rejection.
            fragment: Optional rejected fragment text.
            cause: Optional original exception.
        """
        self.details = details
        self.fragment = fragment
        self.cause = cause

        cause_info = f" (caused by: {type(cause).__name__}: {cause})" if cause else ""
        super().__init__(f"Malformed fragment: {details}{cause_info}")

        if cause:
            self.__cause__ = cause


class MalformedDocument(StoreError):
    """Raised when a document does not have the wrapper/entities-root shape.

    Attributes:
        document: Name of the offending document.
        details: Description of the shape violation.
    """

    def __init__(self, document: str, details: str):
        """Initialize MalformedDocument.

        Args:
            document: Document name.
            details: What is wrong with its shape.
        """
        self.document = document
        self.details = details
        super().__init__(f"Malformed document {document!r}: {details}")


class BackendUnavailable(StoreError):
    """Raised when the document database call itself fails.

    Wraps connection, driver, and session errors. Never retried here.

    Attributes:
        details: Description of the backend error.
        cause: Optional original exception from the backend.
    """

    def __init__(
        self,
        details: str,
        cause: BaseException | None = None,
    ):
        """Initialize BackendUnavailable.

        Args:
            details: Description of the backend error.
            cause: Optional original exception from the backend.
        """
        self.details = details
        self.cause = cause

        cause_info = f" (caused by: {type(cause).__name__}: {cause})" if cause else ""
        super().__init__(f"Backend unavailable: {details}{cause_info}")

        if cause:
            self.__cause__ = cause


__all__ = [
    "StoreError",
    "NotFound",
    "AlreadyExists",
    "ValidationError",
    "NotSupported",
    "AmbiguousMatch",
    "MalformedFragment",
    "MalformedDocument",
    "BackendUnavailable",
]
