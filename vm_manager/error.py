__all__ = [
    "Error", "ConnectionFailedError", "DomainDoesNotExistError", "InvalidStateTransitionError",
    "DefinitionConflictError", "TemplateRenderError", "GuestAgentError", "ValidationError",
]


class Error(Exception):
    pass


class ConnectionFailedError(Error):
    pass


class DomainDoesNotExistError(Error):
    pass


class InvalidStateTransitionError(Error):
    pass


class DefinitionConflictError(Error):
    pass


class TemplateRenderError(Error):
    pass


class GuestAgentError(Error):
    pass


class ValidationError(Error):
    def __init__(self, errors: list[tuple[str, str]]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors))
