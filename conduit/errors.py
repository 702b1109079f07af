"""
Error taxonomy shared by the service layer and the HTTP adapter.

Services raise the subclasses of ``ServiceError``; ``conduit.main``
renders them with their ``status_code``.  Anything else that escapes a
service is treated as an internal failure and never shown to clients.
"""


class ServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = 404


class AlreadyExistsError(ServiceError):
    status_code = 409


class InvalidArgumentError(ServiceError):
    status_code = 422


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    """Raised by routers when the authenticated user does not own a resource."""

    status_code = 403
