"""Error taxonomy for the data access layer"""

from typing import Optional


class DataAccessError(Exception):
    """Base class for failures raised by a data backend"""
    pass


class NotFoundError(DataAccessError):
    """Raised when a referenced entity does not exist"""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationFailure(DataAccessError):
    """Raised when caller input is missing a required field or is malformed"""
    pass


class TransportError(DataAccessError):
    """Raised when the backend is unreachable, answers non-2xx, or a write cannot be stored"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


# Same failure kind, named after what callers usually see
BackendUnavailable = TransportError


class SerializationError(DataAccessError):
    """Raised when persisted or received data cannot be parsed"""
    pass
