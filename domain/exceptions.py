"""Domain Exceptions"""


class ReservationError(Exception):
    """Base class for every error raised by the reservation core"""


class ValidationError(ReservationError, ValueError):
    """Malformed input, rejected before any search or mutation"""


class NotFoundError(ReservationError, LookupError):
    """Referenced entity does not exist"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(ReservationError, ValueError):
    """Operation rejected by the current state of the store"""


class InvariantViolation(ReservationError, RuntimeError):
    """Internal defect: the engine produced an inconsistent tiling or composite"""
