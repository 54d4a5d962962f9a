"""Who may do what to an assignment.

Every ownership or reviewer check for assignments goes through
:func:`authorize`, so handlers never compare ids or roles inline.
"""

import enum
from dataclasses import dataclass

from fastapi import HTTPException, status

from portal.models.assignment import Assignment
from portal.models.user import Role, User


class Operation(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"
    SUBMIT = "submit"
    DELETE = "delete"
    DECIDE = "decide"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


ALLOW = Decision(allowed=True)

_OWNER_OPERATIONS = {Operation.EDIT, Operation.SUBMIT, Operation.DELETE}


def authorize(operation: Operation, caller: User, assignment: Assignment) -> Decision:
    is_owner = assignment.owner_id == caller.id
    is_reviewer = assignment.reviewer_id is not None and assignment.reviewer_id == caller.id

    if operation == Operation.VIEW:
        if is_owner or is_reviewer or caller.role == Role.ADMIN.value:
            return ALLOW
        return Decision(False, "You do not have access to this assignment.")

    if operation in _OWNER_OPERATIONS:
        if caller.role != Role.STUDENT.value:
            return Decision(False, "Only students can change assignments.")
        if not is_owner:
            return Decision(False, "You do not own this assignment.")
        return ALLOW

    if operation == Operation.DECIDE:
        if caller.role != Role.PROFESSOR.value:
            return Decision(False, "Only professors can review assignments.")
        if not is_reviewer:
            return Decision(False, "You are not the assigned reviewer for this assignment.")
        owner = assignment.owner
        if owner is None or caller.department_id is None or caller.department_id != owner.department_id:
            return Decision(False, "Reviewer must belong to the student's department.")
        return ALLOW

    return Decision(False, "Unknown operation.")


def enforce(operation: Operation, caller: User, assignment: Assignment) -> None:
    decision = authorize(operation, caller, assignment)
    if not decision.allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=decision.reason)
