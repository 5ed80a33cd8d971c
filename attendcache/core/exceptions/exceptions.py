class AppError(Exception):
    """Base class for all application-level errors."""
    pass


class DomainError(AppError):
    """Base for domain logic errors."""
    pass

class InvalidCacheTTLError(DomainError):
    def __init__(self, key: str, ttl):
        self.key = key
        self.ttl = ttl
        self.message = f"TTL for cache key '{key}' must be positive, got {ttl}"
        super().__init__(self.message)

class InvalidCursorChainError(DomainError):
    def __init__(self, signature: str, detail: str = ""):
        self.signature = signature
        self.message = f"Invalid cursor chain for '{signature}': {detail}"
        super().__init__(self.message)

class InvalidSortDirectionError(DomainError):
    def __init__(self, direction) -> None:
        self.message = f"Sort direction must be 'asc' or 'desc', got '{direction}'"
        super().__init__(self.message)



class InfrastructureError(AppError):
    """Base for infrastructure-related errors (storage, API, etc)."""
    pass

class PersistenceError(InfrastructureError):
    def __init__(self, backend: str, detail: str = ""):
        self.backend = backend
        self.message = f"Persistent storage '{backend}' failed: {detail}"
        super().__init__(self.message)

class ExternalAPIError(InfrastructureError):
    def __init__(self, service: str, detail: str = ""):
        self.message = f"Error with external service '{service}': {detail}"
        super().__init__(self.message)
