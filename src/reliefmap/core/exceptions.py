"""Exception hierarchy for ReliefMap.

This module defines all ReliefMap exceptions in a single location. Core
components raise these exceptions directly; the HTTP layer catches and
formats them for clients.

Exception Hierarchy:
    ReliefMapError (base)
    |-- ProviderUnavailable - One geocoding backend failed (swallowed by resolver)
    |-- ResolutionNotFound - Whole provider chain exhausted
    |-- CacheUnavailable - Cache store failure (swallowed by cache)
    |-- InvalidInputError - Malformed client input
    |   |-- InvalidLocationError - Blank or unparsable location
    |   +-- InvalidRadiusError - Negative / non-numeric radius
    |-- EntityNotFoundError - Unknown entity id
    |-- QueryError - Store query failures
    +-- BackendError - Database backend failures
        |-- ConnectionError - Connection failures
        +-- QueryExecutionError - Statement execution failures
"""


class ReliefMapError(Exception):
    """Base exception for all ReliefMap errors.

    Example:
        try:
            coords = resolver.resolve("Manhattan, NYC")
        except ReliefMapError as e:
            return {"error": type(e).__name__, "message": str(e)}
    """

    pass


class ProviderUnavailable(ReliefMapError):
    """Raised when a single geocoding provider fails or times out.

    The resolver treats this as "try the next provider"; it never reaches
    callers of ``LocationResolver.resolve``.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str = "unknown"):
        self.provider = provider
        super().__init__(message)


class ResolutionNotFound(ReliefMapError):
    """Raised when every provider in the chain failed or returned nothing.

    Attributes:
        location_name: The place name that could not be resolved
    """

    def __init__(self, location_name: str):
        self.location_name = location_name
        super().__init__(
            f"Could not resolve location '{location_name}'. Please try again "
            "with a more specific place name."
        )


class CacheUnavailable(ReliefMapError):
    """Raised when the cache table cannot be read or written.

    TTLCache raises it around backend failures and its public methods catch
    it, so callers only ever see a miss or a False result.
    """

    pass


class InvalidInputError(ReliefMapError):
    """Raised for malformed client input. Never retried.

    Attributes:
        field: The offending request field (optional)
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidLocationError(InvalidInputError):
    """Raised when a location name or coordinate pair is malformed."""

    def __init__(self, message: str, field: str | None = "location_name"):
        super().__init__(message, field)


class InvalidRadiusError(InvalidInputError):
    """Raised when a search radius is negative or not a number."""

    def __init__(self, message: str, field: str | None = "radius"):
        super().__init__(message, field)


class EntityNotFoundError(ReliefMapError):
    """Raised when an entity id does not exist in the store.

    Attributes:
        kind: Entity kind value (e.g. "resource")
        entity_id: The id that was looked up
    """

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} with ID {entity_id} not found")


class QueryError(ReliefMapError):
    """Raised when a store query fails.

    Attributes:
        message: Human-readable error description
        sql: The SQL statement that failed (optional)
    """

    def __init__(self, message: str, sql: str | None = None):
        self.sql = sql
        super().__init__(message)


class BackendError(ReliefMapError):
    """Base exception for backend errors.

    Attributes:
        message: Human-readable error description
        backend: Name of the backend that raised the error
        recoverable: Whether the error might be resolved by retrying
    """

    def __init__(
        self, message: str, backend: str = "unknown", recoverable: bool = False
    ):
        self.message = message
        self.backend = backend
        self.recoverable = recoverable
        super().__init__(message)


class ConnectionError(BackendError):
    """Raised when the backend cannot connect to the database."""

    def __init__(self, message: str, backend: str = "unknown"):
        super().__init__(message, backend, recoverable=True)


class QueryExecutionError(BackendError):
    """Raised when a statement fails to execute."""

    def __init__(self, message: str, sql: str, backend: str = "unknown"):
        super().__init__(message, backend, recoverable=False)
        self.sql = sql
