"""
Engine exceptions

All business-rule failures live here so the API layer can map them
to HTTP status codes in one place:

- NotFound        -> 404
- ValidationError -> 400 (malformed input, never auto-retried)
- ConflictError   -> 409 (invalid for current state, refresh and retry)
- StorageError    -> 503 (store unreachable or transaction aborted, retryable)
"""


class PoolEngineException(Exception):
    """Base class for every engine exception"""
    pass


class NotFound(PoolEngineException):
    """Referenced entity does not exist"""
    entity = "Entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class ValidationError(PoolEngineException):
    """Malformed or out-of-range input"""
    pass


class ConflictError(PoolEngineException):
    """Operation is not valid for the current state"""
    pass


class StorageError(PoolEngineException):
    """Persistence unreachable or transaction aborted"""
    pass


# ============ Not found ============

class CatalogueNotFound(NotFound):
    entity = "Catalogue"


class TeamNotFound(NotFound):
    entity = "Team"


class PlayerNotFound(NotFound):
    entity = "Player"


class PoolNotFound(NotFound):
    entity = "Pool"


class RoundNotFound(NotFound):
    entity = "Round"


class PickNotFound(NotFound):
    entity = "Pick"


# ============ State conflicts ============

class InvalidStateTransition(ConflictError):
    """Illegal status transition"""
    pass


class RoundClosed(ConflictError):
    """Round is closed, its picks are immutable"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} is closed")


class PoolCompleted(ConflictError):
    """Pool is completed and accepts no further changes"""
    def __init__(self, pool_id):
        self.pool_id = pool_id
        super().__init__(f"Pool {pool_id} is completed")
