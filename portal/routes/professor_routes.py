from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal import workflow
from portal.auth.dependencies import require_professor
from portal.auth.policy import Operation, enforce
from portal.database import database_unavailable, get_db
from portal.mailer import Mailer, decision_email, get_mailer
from portal.models.assignment import Assignment, AssignmentStatus
from portal.models.user import User
from portal.notifications import unread_count
from portal.schemas import (
    AssignmentResponse,
    DecisionRequest,
    MessageResponse,
    PendingReviewResponse,
    ProfessorDashboardResponse,
)

router = APIRouter(tags=['professor'])


def days_pending(assignment: Assignment, now: datetime | None = None) -> int:
    base = assignment.submitted_at or assignment.created_at
    if base is None:
        return 0
    return max(0, ((now or datetime.utcnow()) - base).days)


@router.get('/dashboard', response_model=ProfessorDashboardResponse)
def professor_dashboard(
    current_user: User = Depends(require_professor),
    db: Session = Depends(get_db),
):
    try:
        counts = workflow.count_by_status(db, Assignment.reviewer_id == current_user.id)
        counts['total'] = counts[AssignmentStatus.APPROVED.value] + counts[AssignmentStatus.REJECTED.value]

        reviews = db.query(Assignment).filter(
            Assignment.reviewer_id == current_user.id,
        ).order_by(Assignment.submitted_at.desc()).all()

        now = datetime.utcnow()
        return ProfessorDashboardResponse(
            counts=counts,
            reviews=[
                PendingReviewResponse(
                    id=assignment.id,
                    title=assignment.title,
                    category=assignment.category,
                    status=assignment.status,
                    student_name=assignment.owner.name if assignment.owner else None,
                    submitted_at=assignment.submitted_at,
                    days_pending=days_pending(assignment, now),
                )
                for assignment in reviews
            ],
            unread_notifications=unread_count(db, current_user.id),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/assignments/{assignment_id}/review', response_model=AssignmentResponse)
def review_assignment(
    assignment_id: int,
    current_user: User = Depends(require_professor),
    db: Session = Depends(get_db),
):
    try:
        assignment = workflow.get_assignment_or_404(db, assignment_id)
        enforce(Operation.VIEW, current_user, assignment)
        return AssignmentResponse.from_assignment(assignment)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/assignments/{assignment_id}/decision', response_model=MessageResponse)
def decide_assignment(
    assignment_id: int,
    data: DecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_professor),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    try:
        assignment = workflow.get_assignment_or_404(db, assignment_id)
        workflow.decide(db, assignment, current_user, data.status, data.remarks)
        student = assignment.owner
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    if student is not None:
        subject, html = decision_email(student.name, assignment.title, assignment.status, assignment.rejection_remarks)
        background_tasks.add_task(mailer.send, student.email, subject, html)

    if assignment.status == AssignmentStatus.APPROVED.value:
        return MessageResponse(message='Assignment approved successfully')
    return MessageResponse(message='Assignment rejected successfully')
