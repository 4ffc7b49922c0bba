"""
Domain errors raised by services and guards.

Every error carries the HTTP status it maps to; `register_error_handlers`
turns them into JSON responses so routes never translate them by hand.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CrmError(Exception):
    status_code = 500
    error = "Internal error"
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"error": self.error, "message": self.message}


# 404
class NotFound(CrmError):
    status_code = 404
    error = "Not found"


class GroupNotFound(NotFound):
    default_message = "Group not found"


class MemberNotFound(NotFound):
    default_message = "Member not found"


class MeetingNotFound(NotFound):
    default_message = "Meeting not found"


class NotAMember(NotFound):
    default_message = "Member is not in this group"


class AttendanceNotFound(NotFound):
    default_message = "Attendance record not found"


class NoteNotFound(NotFound):
    default_message = "Note not found"


class UserNotFound(NotFound):
    default_message = "User not found"


# 403
class Forbidden(CrmError):
    status_code = 403
    error = "Forbidden"
    default_message = "You are not allowed to modify this resource"


# 400
class BadRequest(CrmError):
    status_code = 400
    error = "Bad request"


class AlreadyMember(BadRequest):
    default_message = "Member is already in this group"


class InvalidInput(BadRequest):
    default_message = "Invalid input"


# 409
class Conflict(CrmError):
    status_code = 409
    error = "Conflict"


class DuplicateUser(Conflict):
    default_message = "Username or email already exists"


class UserLeadsGroups(Conflict):
    default_message = "User still leads one or more groups"


class CategoryConflict(Conflict):
    """Another member of the group already holds the candidate's category."""

    error = "Category conflict"

    def __init__(self, member_id: int, name: str, category: str):
        self.member_id = member_id
        self.name = name
        self.category = category
        super().__init__(
            f'Cannot add member. {name} is already in this group with the category "{category}". '
            "Only one member per category is allowed in a group."
        )

    def to_body(self) -> dict:
        body = super().to_body()
        body["conflictingMember"] = {
            "id": self.member_id,
            "name": self.name,
            "category": self.category,
        }
        return body


# 500
class PersistenceError(CrmError):
    error = "Persistence failure"
    default_message = "The change could not be saved"


def register_error_handlers(app: FastAPI, hide_internal_errors: bool = False) -> None:
    @app.exception_handler(CrmError)
    async def crm_error_handler(request: Request, exc: CrmError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        if hide_internal_errors:
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})
        return JSONResponse(status_code=500, content={"detail": str(exc)})
