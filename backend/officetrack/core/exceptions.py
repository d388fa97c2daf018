"""Domain error taxonomy shared by the clock engine, leave ledger and routers.

Services raise these; ``main.py`` renders them. Each carries the HTTP status
the transport layer should use and a detail message meant for the end user.
"""

from fastapi import status


class OfficeTrackError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(OfficeTrackError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class Forbidden(OfficeTrackError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class InvalidInput(OfficeTrackError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class NotFound(OfficeTrackError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidState(OfficeTrackError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not allowed in the current state"


class Conflict(OfficeTrackError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"
