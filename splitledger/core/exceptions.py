from fastapi import HTTPException


class SplitError(HTTPException):
    """Base for every failure a service hands back to the caller."""

    status_code = 400
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class BadRequest(SplitError):
    status_code = 400
    default_detail = "Bad request"


class OutstandingBalance(BadRequest):
    default_detail = "You have outstanding balances with this friend"


class ImportFailed(BadRequest):
    default_detail = "Error importing file"


class NotAuthenticated(SplitError):
    status_code = 401
    default_detail = "Could not validate credentials"


class Unauthorized(SplitError):
    status_code = 403
    default_detail = "You are not allowed to do this"


class NotFound(SplitError):
    status_code = 404
    default_detail = "Not found"


class Conflict(SplitError):
    status_code = 409
    default_detail = "The expense was changed by someone else, reload and try again"
