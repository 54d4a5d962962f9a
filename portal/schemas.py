"""Response and request bodies shared by the routers."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator

from portal.models.user import Role

MIN_PASSWORD_LENGTH = 4


def check_password_length(value: str | None) -> str | None:
    # Blank means "leave unchanged" or "generate one" for optional fields.
    if value and value.strip() and len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    return value


class MessageResponse(BaseModel):
    message: str


class DepartmentResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone: str | None = None
    department_id: int | None = None
    department_name: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user) -> 'UserResponse':
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            phone=user.phone,
            department_id=user.department_id,
            department_name=user.department.name if user.department else None,
            created_at=user.created_at,
        )


class ReviewerOptionResponse(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class FileResponse(BaseModel):
    original_name: str | None = None
    size: int | None = None
    mime_type: str | None = None


class FileVersionResponse(BaseModel):
    original_name: str | None = None
    size: int | None = None
    mime_type: str | None = None
    description: str | None = None
    submitted_at: datetime | None = None
    replaced_at: datetime | None = None

    class Config:
        from_attributes = True


class ReviewRecordResponse(BaseModel):
    action: str
    professor_id: int | None = None
    professor_name: str | None = None
    remarks: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AssignmentSummaryResponse(BaseModel):
    id: int
    title: str
    category: str
    status: str
    reviewer_name: str | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    category: str
    status: str
    owner_id: int
    owner_name: str | None = None
    reviewer_id: int | None = None
    reviewer_name: str | None = None
    submitted_at: datetime | None = None
    student_message: str | None = None
    rejection_remarks: str | None = None
    file: FileResponse | None = None
    history: list[FileVersionResponse] = []
    reviews: list[ReviewRecordResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_assignment(cls, assignment) -> 'AssignmentResponse':
        file = None
        if assignment.file_path:
            file = FileResponse(
                original_name=assignment.file_original_name,
                size=assignment.file_size,
                mime_type=assignment.file_mime_type,
            )
        return cls(
            id=assignment.id,
            title=assignment.title,
            description=assignment.description,
            category=assignment.category,
            status=assignment.status,
            owner_id=assignment.owner_id,
            owner_name=assignment.owner.name if assignment.owner else None,
            reviewer_id=assignment.reviewer_id,
            reviewer_name=assignment.reviewer_name,
            submitted_at=assignment.submitted_at,
            student_message=assignment.student_message,
            rejection_remarks=assignment.rejection_remarks,
            file=file,
            history=[FileVersionResponse.model_validate(version) for version in assignment.file_versions],
            reviews=[ReviewRecordResponse.model_validate(record) for record in assignment.review_records],
            created_at=assignment.created_at,
            updated_at=assignment.updated_at,
        )


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str | None = None
    assignment_id: int | None = None
    is_read: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class StudentDashboardResponse(BaseModel):
    counts: dict[str, int]
    recent: list[AssignmentSummaryResponse]
    unread_notifications: int


class PendingReviewResponse(BaseModel):
    id: int
    title: str
    category: str
    status: str
    student_name: str | None = None
    submitted_at: datetime | None = None
    days_pending: int


class ProfessorDashboardResponse(BaseModel):
    counts: dict[str, int]
    reviews: list[PendingReviewResponse]
    unread_notifications: int


class SubmitAssignmentRequest(BaseModel):
    reviewer_id: int | None = None
    message: str | None = None


class DecisionRequest(BaseModel):
    status: str
    remarks: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    role: str
    redirect: str


class ProfileUpdateRequest(BaseModel):
    phone: str | None = None
    new_password: str | None = None

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str | None) -> str | None:
        return check_password_length(value)


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class VerifyOtpRequest(ForgotPasswordRequest):
    otp: str


class ResetPasswordRequest(VerifyOtpRequest):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value


class CreateUserRequest(BaseModel):
    name: str
    email: EmailStr
    role: Role
    department_id: int | None = None
    phone: str | None = None
    password: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str | None) -> str | None:
        return check_password_length(value)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UpdateUserRequest(CreateUserRequest):
    pass


class CreateDepartmentRequest(BaseModel):
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Department name is required.')
        return normalized
