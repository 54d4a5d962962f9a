"""Assignment review workflow.

An assignment moves ``Draft -> Submitted -> Approved | Rejected`` and a
rejected assignment may be edited and submitted again. ``Approved`` is
terminal. :func:`validate_transition` decides legality and
:func:`apply_transition` is the only code that writes ``Assignment.status``.

Every operation checks all of its preconditions before the first write and
raises ``HTTPException`` on the first violation, so a rejected call never
leaves a partial change behind.
"""

import logging
from datetime import datetime

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.policy import Operation, enforce
from portal.models.assignment import (
    Assignment,
    AssignmentCategory,
    AssignmentStatus,
    FileVersion,
    ReviewRecord,
)
from portal.models.notification import Notification
from portal.models.user import Role, User
from portal.notifications import notify
from portal.storage import StoredFile, UploadStorage

logger = logging.getLogger(__name__)

TRANSITIONS = {
    AssignmentStatus.DRAFT: {AssignmentStatus.SUBMITTED},
    AssignmentStatus.SUBMITTED: {AssignmentStatus.APPROVED, AssignmentStatus.REJECTED},
    AssignmentStatus.REJECTED: {AssignmentStatus.SUBMITTED},
    AssignmentStatus.APPROVED: set(),
}
EDITABLE_STATES = {AssignmentStatus.DRAFT, AssignmentStatus.REJECTED}
VERDICTS = {AssignmentStatus.APPROVED, AssignmentStatus.REJECTED}
MAX_TITLE_LENGTH = 200


def validate_transition(current: AssignmentStatus, target: AssignmentStatus) -> None:
    if target not in TRANSITIONS[current]:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Cannot change an assignment from {current.value} to {target.value}.',
        )


def apply_transition(db: Session, assignment: Assignment, target: AssignmentStatus, **changes) -> None:
    current = AssignmentStatus(assignment.status)
    validate_transition(current, target)

    values = {'status': target.value, 'updated_at': datetime.utcnow(), **changes}
    updated = db.query(Assignment).filter(
        Assignment.id == assignment.id,
        Assignment.status == current.value,
    ).update(values, synchronize_session='evaluate')

    if updated != 1:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Assignment was changed by another request. Reload and try again.',
        )

    logger.info('Assignment %s moved from %s to %s', assignment.id, current.value, target.value)


def count_by_status(db: Session, *criteria) -> dict[str, int]:
    counts = {option.value: 0 for option in AssignmentStatus}
    rows = db.query(Assignment.status, func.count(Assignment.id)).filter(*criteria).group_by(Assignment.status).all()
    for status_value, count in rows:
        counts[status_value] = count
    return counts


def get_assignment_or_404(db: Session, assignment_id: int) -> Assignment:
    assignment = db.get(Assignment, assignment_id)
    if assignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Assignment not found.',
        )
    return assignment


def normalize_fields(title: str | None, category: str | None) -> tuple[str, AssignmentCategory]:
    normalized_title = (title or '').strip()
    normalized_category = (category or '').strip()

    if not normalized_title or not normalized_category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Title and Category are required.',
        )

    if len(normalized_title) > MAX_TITLE_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Title must be {MAX_TITLE_LENGTH} characters or fewer.',
        )

    for option in AssignmentCategory:
        if option.value.lower() == normalized_category.lower():
            return normalized_title, option

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail='Invalid category.',
    )


def _file_columns(stored: StoredFile) -> dict:
    return {
        'file_stored_name': stored.stored_name,
        'file_original_name': stored.original_name,
        'file_path': stored.path,
        'file_size': stored.size,
        'file_mime_type': stored.mime_type,
    }


def create_draft(
    db: Session,
    storage: UploadStorage,
    student: User,
    title: str | None,
    description: str | None,
    category: str | None,
    upload: UploadFile | None,
) -> Assignment:
    normalized_title, normalized_category = normalize_fields(title, category)
    stored = storage.save(upload)

    assignment = Assignment(
        title=normalized_title,
        description=(description or '').strip(),
        category=normalized_category.value,
        status=AssignmentStatus.DRAFT.value,
        owner_id=student.id,
        **_file_columns(stored),
    )

    try:
        db.add(assignment)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.delete(stored.path)
        raise

    db.refresh(assignment)
    return assignment


def find_eligible_reviewer(db: Session, student: User, reviewer_id: int | None) -> User:
    if reviewer_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Please select a reviewer.',
        )

    reviewer = db.get(User, reviewer_id)
    if reviewer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Selected reviewer was not found.',
        )

    if reviewer.role != Role.PROFESSOR.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Selected reviewer is not a professor.',
        )

    if student.department_id is None or reviewer.department_id != student.department_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Reviewer must belong to your department.',
        )

    return reviewer


def submit(
    db: Session,
    assignment: Assignment,
    student: User,
    reviewer_id: int | None,
    message: str | None = None,
) -> Notification:
    enforce(Operation.SUBMIT, student, assignment)
    validate_transition(AssignmentStatus(assignment.status), AssignmentStatus.SUBMITTED)

    if not assignment.file_path:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Upload a file before submitting.',
        )

    reviewer = find_eligible_reviewer(db, student, reviewer_id)

    apply_transition(
        db,
        assignment,
        AssignmentStatus.SUBMITTED,
        reviewer_id=reviewer.id,
        reviewer_name=reviewer.name,
        submitted_at=datetime.utcnow(),
        student_message=(message or '').strip(),
        rejection_remarks='',
    )
    notification = notify(
        db,
        user_id=reviewer.id,
        title='New assignment to review',
        message=f'{student.name} submitted "{assignment.title}" for review.',
        assignment_id=assignment.id,
    )
    db.commit()
    db.refresh(assignment)
    return notification


def parse_verdict(verdict: str | None) -> AssignmentStatus:
    normalized = (verdict or '').strip().lower()
    for option in VERDICTS:
        if option.value.lower() == normalized:
            return option
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail='Invalid action.',
    )


def decide(
    db: Session,
    assignment: Assignment,
    professor: User,
    verdict: str | None,
    remarks: str | None = None,
) -> Notification:
    target = parse_verdict(verdict)
    enforce(Operation.DECIDE, professor, assignment)

    if assignment.status != AssignmentStatus.SUBMITTED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Only submitted assignments can be reviewed.',
        )

    normalized_remarks = (remarks or '').strip()
    apply_transition(
        db,
        assignment,
        target,
        rejection_remarks=normalized_remarks if target == AssignmentStatus.REJECTED else '',
    )
    db.add(
        ReviewRecord(
            assignment_id=assignment.id,
            action=target.value,
            professor_id=professor.id,
            professor_name=professor.name,
            remarks=normalized_remarks,
        )
    )
    notification = notify(
        db,
        user_id=assignment.owner_id,
        title=f'Assignment {target.value}',
        message=f'Your assignment "{assignment.title}" has been {target.value.lower()}.',
        assignment_id=assignment.id,
    )
    db.commit()
    db.refresh(assignment)
    return notification


def ensure_editable(assignment: Assignment) -> None:
    if AssignmentStatus(assignment.status) not in EDITABLE_STATES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Only Draft or Rejected assignments can be edited.',
        )


def edit(
    db: Session,
    storage: UploadStorage,
    assignment: Assignment,
    student: User,
    title: str | None,
    description: str | None,
    category: str | None,
    upload: UploadFile | None = None,
) -> Assignment:
    """Update the editable fields and optionally replace the stored file.

    The new file is written before the database update and the old file is
    removed only after the commit. A failed commit removes the new file.
    """
    enforce(Operation.EDIT, student, assignment)
    ensure_editable(assignment)
    normalized_title, normalized_category = normalize_fields(title, category)

    stored = None
    if upload is not None and upload.filename:
        stored = storage.save(upload)

    replaced_path = None
    if stored is not None:
        if assignment.file_path:
            replaced_path = assignment.file_path
            db.add(
                FileVersion(
                    assignment_id=assignment.id,
                    original_name=assignment.file_original_name,
                    size=assignment.file_size,
                    mime_type=assignment.file_mime_type,
                    description=assignment.description or '',
                    submitted_at=assignment.submitted_at,
                )
            )
        for column, value in _file_columns(stored).items():
            setattr(assignment, column, value)

    assignment.title = normalized_title
    assignment.description = (description or '').strip()
    assignment.category = normalized_category.value

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if stored is not None:
            storage.delete(stored.path)
        raise

    storage.delete(replaced_path)
    db.refresh(assignment)
    return assignment


def delete(db: Session, storage: UploadStorage, assignment: Assignment, student: User) -> None:
    enforce(Operation.DELETE, student, assignment)

    if assignment.status == AssignmentStatus.APPROVED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Approved assignments cannot be deleted.',
        )

    assignment_id = assignment.id
    file_path = assignment.file_path
    # SQLite does not enforce the SET NULL foreign key unless the pragma is on.
    db.query(Notification).filter(
        Notification.assignment_id == assignment_id,
    ).update({'assignment_id': None}, synchronize_session=False)
    db.delete(assignment)
    db.commit()
    storage.delete(file_path)
    logger.info('Assignment %s deleted by user %s', assignment_id, student.id)
