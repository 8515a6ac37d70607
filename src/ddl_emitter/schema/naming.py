"""Naming conflict resolution for schema entities.

Assigns every table, enum, union enum and namespace exactly one SQL
identifier that is unique (case-insensitively), at most 63 characters long
and not a reserved keyword.  Identifiers are remembered per entity handle
for the lifetime of the resolver; a fresh resolver is used for every
emission pass.

Usage:
    from ddl_emitter.schema.naming import NamingConflictResolver

    resolver = NamingConflictResolver()
    result = resolver.register(table)
    if result.success:
        print(result.name, result.warning)
    else:
        print(result.error.kind, result.error.name)
"""

import logging
from enum import Enum

from pydantic import BaseModel

from ddl_emitter.schema.errors import (
    DuplicateEntityCollisionError,
    InternalInvariantError,
    NameTooLongError,
    NamingConflictError,
    ReservedKeywordError,
)
from ddl_emitter.schema.keywords import is_reserved_keyword
from ddl_emitter.schema.models import Entity, Namespace, Table, UnionEnum

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 63
ANONYMOUS_MODEL_NAME = "Anonymous_Model"


# ============================================================================
# Result Models
# ============================================================================


class NamingErrorKind(str, Enum):
    """Why an identifier could not be assigned."""

    RESERVED_KEYWORD = "reserved-keyword"
    DUPLICATE_ENTITY = "duplicate-entity"
    NAME_TOO_LONG = "name-too-long"


class NamingError(BaseModel):
    """A failed registration.

    Example:
        >>> error = NamingError(kind=NamingErrorKind.NAME_TOO_LONG, name="x" * 64)
        >>> error.kind.value
        'name-too-long'
    """

    kind: NamingErrorKind
    name: str
    message: str = ""


class RegistrationResult(BaseModel):
    """Outcome of ``register()`` / ``register_namespace()``.

    Example:
        >>> result = RegistrationResult(success=True, name="Anonymous_Model_1", warning=True)
        >>> result.warning
        True
    """

    success: bool
    name: str | None = None
    warning: bool = False  # renamed because of a collision with a derived name
    error: NamingError | None = None


_ERROR_KINDS: dict[type[NamingConflictError], NamingErrorKind] = {
    ReservedKeywordError: NamingErrorKind.RESERVED_KEYWORD,
    DuplicateEntityCollisionError: NamingErrorKind.DUPLICATE_ENTITY,
    NameTooLongError: NamingErrorKind.NAME_TOO_LONG,
}


def _failed(error: NamingConflictError) -> RegistrationResult:
    return RegistrationResult(
        success=False,
        error=NamingError(
            kind=_ERROR_KINDS[type(error)],
            name=error.error_name,
            message=str(error),
        ),
    )


# ============================================================================
# Resolver
# ============================================================================


class NamingConflictResolver:
    """Assigns and remembers one identifier per entity handle."""

    def __init__(self) -> None:
        self._resolved: dict[int, str] = {}
        self._holders: dict[str, int] = {}  # lower-cased identifier -> handle
        self._explicit_names: dict[int, str] = {}

    def reset(self) -> None:
        """Forget every registered identifier."""
        self._resolved.clear()
        self._holders.clear()
        self._explicit_names.clear()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, entity: Entity, name: str | None = None) -> RegistrationResult:
        """Assign an identifier to a table, enum or union enum.

        Precedence of the candidate name: ``Anonymous_Model`` for a table
        without a name, then the explicit ``entity_name``, then the derived
        name of a union enum, then *name*, then the structural name.  A
        non-global namespace prefixes the candidate with its identifier and
        a dot; that namespace must already be registered.

        Args:
            entity: Entity to register.
            name: Replacement for the structural name.

        Returns:
            ``RegistrationResult``.  On failure nothing is recorded for
            *entity*.

        Raises:
            InternalInvariantError: If the owning namespace is not
                registered or no candidate name can be built.
        """
        if entity.handle in self._resolved:
            return RegistrationResult(success=True, name=self._resolved[entity.handle])

        explicit_name = entity.entity_name or None
        try:
            candidate = self._candidate_name(entity, explicit_name, name)
            prefix = self._schema_prefix(entity.naming_namespace)

            if explicit_name and self._holder_of(prefix + explicit_name) is not None:
                raise DuplicateEntityCollisionError(
                    f"Entity already defined '{explicit_name}'", explicit_name
                )

            unique_name, warning = self._generate_unique_name(prefix + candidate)
        except NamingConflictError as e:
            logger.debug(f"Could not register {entity.name!r}: {e}")
            return _failed(e)

        self._record(entity.handle, unique_name)
        if explicit_name:
            self._explicit_names[entity.handle] = explicit_name
        return RegistrationResult(success=True, name=unique_name, warning=warning)

    def register_namespace(self, namespace: Namespace) -> RegistrationResult:
        """Assign an identifier to a namespace.

        The candidate is the underscore-joined chain of namespace names
        (``one.two.three`` becomes ``one_two_three``).  It competes with
        entity identifiers under the same rules as a derived name.
        """
        if namespace.handle in self._resolved:
            return RegistrationResult(success=True, name=self._resolved[namespace.handle])

        try:
            unique_name, warning = self._generate_unique_name("_".join(namespace.chain))
        except NamingConflictError as e:
            logger.debug(f"Could not register namespace {namespace.full_name!r}: {e}")
            return _failed(e)

        self._record(namespace.handle, unique_name)
        return RegistrationResult(success=True, name=unique_name, warning=warning)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def is_registered(self, entity: Entity | Namespace) -> bool:
        return entity.handle in self._resolved

    def lookup(self, entity: Entity | Namespace) -> str:
        """Identifier of an already registered entity or namespace.

        Raises:
            InternalInvariantError: If *entity* was never registered.
        """
        try:
            return self._resolved[entity.handle]
        except KeyError:
            raise InternalInvariantError(
                f"Tried to retrieve the identifier of '{entity.name}' before it was registered"
            ) from None

    def identifiers(self) -> list[str]:
        """All assigned identifiers in registration order."""
        return list(self._resolved.values())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, handle: int, identifier: str) -> None:
        self._resolved[handle] = identifier
        self._holders[identifier.lower()] = handle

    def _holder_of(self, identifier: str) -> int | None:
        return self._holders.get(identifier.lower())

    def _candidate_name(self, entity: Entity, explicit_name: str | None, name: str | None) -> str:
        if isinstance(entity, Table) and entity.name == "":
            candidate = ANONYMOUS_MODEL_NAME
        elif explicit_name:
            if is_reserved_keyword(explicit_name):
                raise ReservedKeywordError("Reserved Keyword Error", explicit_name)
            candidate = explicit_name
        elif isinstance(entity, UnionEnum):
            candidate = self._union_enum_name(entity)
        else:
            candidate = name if name is not None else entity.name

        if not candidate:
            raise InternalInvariantError("Cannot register an entity with an empty name")
        return candidate

    @staticmethod
    def _union_enum_name(union: UnionEnum) -> str:
        """``<Owner><Property>Enum`` for a union declared on a column."""
        if union.name:
            return union.name
        if union.property_name is None:
            raise InternalInvariantError("An anonymous union without a property cannot be emitted")

        property_name = union.property_name
        name = property_name[:1].upper() + property_name[1:] + "Enum"
        owner_name = ""
        if union.owner is not None:
            owner_name = union.owner.entity_name or union.owner.name
        return owner_name + name

    def _schema_prefix(self, namespace: Namespace | None) -> str:
        if namespace is None:
            return ""
        identifier = self._resolved.get(namespace.handle)
        if identifier is None:
            raise InternalInvariantError(
                f"Namespace '{namespace.full_name}' must be registered before its entities"
            )
        return identifier + "."

    def _generate_unique_name(self, base_name: str) -> tuple[str, bool]:
        """Find a free identifier for *base_name*.

        Tries ``base_name``, ``base_name_1``, ``base_name_2``... while the
        identifier is held by an entity without an explicit name.

        Returns:
            Tuple of (identifier, warning) where warning is True if the
            identifier had to be suffixed.
        """
        count = 0
        warning = False
        while True:
            candidate = base_name if count == 0 else f"{base_name}_{count}"
            if is_reserved_keyword(candidate):
                raise ReservedKeywordError(f"Reserved Keyword Error {candidate}", candidate)

            holder = self._holder_of(candidate)
            if holder is None:
                break
            if holder in self._explicit_names:
                raise DuplicateEntityCollisionError(
                    f"Entity already defined '{candidate}'", self._explicit_names[holder]
                )
            warning = True
            count += 1

        if len(candidate) > MAX_IDENTIFIER_LENGTH:
            raise NameTooLongError(f"The entity name '{candidate}' is too long", candidate)
        return candidate, warning
