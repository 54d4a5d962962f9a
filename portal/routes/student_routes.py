from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal import workflow
from portal.auth.dependencies import require_student
from portal.auth.policy import Operation, enforce
from portal.database import database_unavailable, get_db
from portal.models.assignment import Assignment
from portal.models.user import Role, User
from portal.notifications import unread_count
from portal.schemas import (
    AssignmentResponse,
    AssignmentSummaryResponse,
    MessageResponse,
    ReviewerOptionResponse,
    StudentDashboardResponse,
    SubmitAssignmentRequest,
)
from portal.storage import UploadStorage, get_storage

router = APIRouter(tags=['student'])

RECENT_ASSIGNMENTS_LIMIT = 5


@router.get('/dashboard', response_model=StudentDashboardResponse)
def student_dashboard(
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    try:
        counts = workflow.count_by_status(db, Assignment.owner_id == current_user.id)
        recent = db.query(Assignment).filter(
            Assignment.owner_id == current_user.id,
        ).order_by(Assignment.created_at.desc(), Assignment.id.desc()).limit(RECENT_ASSIGNMENTS_LIMIT).all()

        return StudentDashboardResponse(
            counts=counts,
            recent=[AssignmentSummaryResponse.model_validate(assignment) for assignment in recent],
            unread_notifications=unread_count(db, current_user.id),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/professors', response_model=list[ReviewerOptionResponse])
def list_eligible_reviewers(
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    if current_user.department_id is None:
        return []

    try:
        return db.query(User).filter(
            User.role == Role.PROFESSOR.value,
            User.department_id == current_user.department_id,
        ).order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/assignments', response_model=list[AssignmentSummaryResponse])
def list_my_assignments(
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    try:
        return db.query(Assignment).filter(
            Assignment.owner_id == current_user.id,
        ).order_by(Assignment.created_at.desc(), Assignment.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/assignments/upload', response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
def upload_assignment(
    title: str = Form(''),
    description: str = Form(''),
    category: str = Form(''),
    file: UploadFile | None = File(None),
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
    storage: UploadStorage = Depends(get_storage),
):
    try:
        assignment = workflow.create_draft(db, storage, current_user, title, description, category, file)
        return AssignmentResponse.from_assignment(assignment)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/assignments/{assignment_id}', response_model=AssignmentResponse)
def get_my_assignment(
    assignment_id: int,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    try:
        assignment = workflow.get_assignment_or_404(db, assignment_id)
        enforce(Operation.VIEW, current_user, assignment)
        return AssignmentResponse.from_assignment(assignment)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/assignments/{assignment_id}/edit', response_model=AssignmentResponse)
def edit_assignment(
    assignment_id: int,
    title: str = Form(''),
    description: str = Form(''),
    category: str = Form(''),
    file: UploadFile | None = File(None),
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
    storage: UploadStorage = Depends(get_storage),
):
    try:
        assignment = workflow.get_assignment_or_404(db, assignment_id)
        assignment = workflow.edit(db, storage, assignment, current_user, title, description, category, file)
        return AssignmentResponse.from_assignment(assignment)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/assignments/{assignment_id}/submit', response_model=AssignmentResponse)
def submit_assignment(
    assignment_id: int,
    data: SubmitAssignmentRequest,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    try:
        assignment = workflow.get_assignment_or_404(db, assignment_id)
        workflow.submit(db, assignment, current_user, data.reviewer_id, data.message)
        return AssignmentResponse.from_assignment(assignment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post('/assignments/{assignment_id}/delete', response_model=MessageResponse)
def delete_assignment(
    assignment_id: int,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
    storage: UploadStorage = Depends(get_storage),
):
    try:
        assignment = workflow.get_assignment_or_404(db, assignment_id)
        workflow.delete(db, storage, assignment, current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return MessageResponse(message='Assignment deleted successfully.')
