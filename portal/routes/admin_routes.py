import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.dependencies import require_admin
from portal.auth.passwords import generate_password, hash_password
from portal.database import database_unavailable, get_db
from portal.mailer import Mailer, account_email, get_mailer
from portal.models.assignment import Assignment, AssignmentStatus, ReviewRecord
from portal.models.department import Department
from portal.models.notification import Notification
from portal.models.user import Role, User
from portal.notifications import notify
from portal.schemas import (
    CreateDepartmentRequest,
    CreateUserRequest,
    DepartmentResponse,
    MessageResponse,
    UpdateUserRequest,
    UserResponse,
)

router = APIRouter(tags=['admin'])

logger = logging.getLogger(__name__)

DEPARTMENT_ROLES = {Role.STUDENT, Role.PROFESSOR, Role.HOD}


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='User not found.',
        )
    return user


def validate_department(db: Session, role: Role, department_id: int | None) -> None:
    if department_id is None:
        if role in DEPARTMENT_ROLES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Department is required for students, professors and HODs.',
            )
        return

    if db.get(Department, department_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Department not found.',
        )


def ensure_email_available(db: Session, email: str, user_id: int | None = None) -> None:
    query = db.query(User).filter(User.email == email)
    if user_id is not None:
        query = query.filter(User.id != user_id)
    if query.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Email already in use.',
        )


def ensure_assignment_links_kept(db: Session, user: User, role: Role, department_id: int | None) -> None:
    """Refuse role or department changes that would break a reviewer pairing."""
    role_changed = user.role != role.value
    department_changed = user.department_id != department_id
    if not role_changed and not department_changed:
        return

    in_review = db.query(Assignment.id).filter(
        Assignment.status == AssignmentStatus.SUBMITTED.value,
        or_(Assignment.owner_id == user.id, Assignment.reviewer_id == user.id),
    ).first()
    if in_review is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='User has assignments under review; role and department cannot change until they are decided.',
        )

    if role_changed:
        owns_assignments = db.query(Assignment.id).filter(Assignment.owner_id == user.id).first()
        if owns_assignments is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='User owns assignments; their role cannot change.',
            )


@router.get('/users', response_model=list[UserResponse])
def list_users(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        users = db.query(User).order_by(User.name.asc()).all()
        return [UserResponse.from_user(user) for user in users]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/users', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: CreateUserRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    plain_password = data.password if (data.password or '').strip() else generate_password()

    try:
        validate_department(db, data.role, data.department_id)
        ensure_email_available(db, data.email)

        user = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(plain_password),
            role=data.role.value,
            phone=(data.phone or '').strip() or None,
            department_id=data.department_id,
        )
        db.add(user)
        db.flush()
        notify(
            db,
            user_id=user.id,
            title='Welcome to the University Portal',
            message='Your account has been created. Check your email for your login details.',
        )
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Admin %s created user %s (%s)', current_user.id, user.id, user.role)
    subject, html = account_email(user.name, user.email, plain_password, created=True)
    background_tasks.add_task(mailer.send, user.email, subject, html)
    return UserResponse.from_user(user)


@router.get('/users/{user_id}', response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return UserResponse.from_user(get_user_or_404(db, user_id))
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/users/{user_id}', response_model=UserResponse)
def update_user(
    user_id: int,
    data: UpdateUserRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    new_password = data.password if (data.password or '').strip() else ''

    try:
        user = get_user_or_404(db, user_id)
        validate_department(db, data.role, data.department_id)
        ensure_email_available(db, data.email, user_id=user.id)
        ensure_assignment_links_kept(db, user, data.role, data.department_id)

        user.name = data.name
        user.email = data.email
        user.role = data.role.value
        user.phone = (data.phone or '').strip() or None
        user.department_id = data.department_id
        if new_password:
            user.hashed_password = hash_password(new_password)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    subject, html = account_email(user.name, user.email, new_password, created=False)
    background_tasks.add_task(mailer.send, user.email, subject, html)
    return UserResponse.from_user(user)


@router.post('/users/{user_id}/delete', response_model=MessageResponse)
def delete_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(db, user_id)

        if user.id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='You cannot delete your own account.',
            )

        owns_assignments = db.query(Assignment.id).filter(Assignment.owner_id == user.id).first()
        if owns_assignments is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='User still owns assignments and cannot be deleted.',
            )

        reviews_assignments = db.query(Assignment.id).filter(Assignment.reviewer_id == user.id).first()
        has_review_records = db.query(ReviewRecord.id).filter(ReviewRecord.professor_id == user.id).first()
        if reviews_assignments is not None or has_review_records is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='User is the reviewer of existing assignments and cannot be deleted.',
            )

        db.query(Notification).filter(Notification.user_id == user.id).delete(synchronize_session=False)
        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Admin %s deleted user %s', current_user.id, user_id)
    return MessageResponse(message='User deleted successfully')


@router.get('/departments', response_model=list[DepartmentResponse])
def list_departments(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return db.query(Department).order_by(Department.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/departments', response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
def create_department(
    data: CreateDepartmentRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        existing = db.query(Department).filter(Department.name == data.name).first()
        if existing is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Department already exists.',
            )

        department = Department(name=data.name)
        db.add(department)
        db.commit()
        db.refresh(department)
        return department
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post('/departments/{department_id}/delete', response_model=MessageResponse)
def delete_department(
    department_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        department = db.get(Department, department_id)
        if department is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Department not found.',
            )

        in_use = db.query(User.id).filter(User.department_id == department.id).first()
        if in_use is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Department still has users and cannot be deleted.',
            )

        db.delete(department)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return MessageResponse(message='Department deleted successfully')
