import io
import os

os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key')
os.environ.setdefault('BCRYPT_ROUNDS', '4')
os.environ.setdefault('RATE_LIMIT_ENABLED', 'false')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.datastructures import Headers, UploadFile  # noqa: E402

from portal.auth.passwords import hash_password  # noqa: E402
from portal.database import Base  # noqa: E402
from portal.models.assignment import Assignment  # noqa: E402,F401
from portal.models.department import Department  # noqa: E402
from portal.models.notification import Notification  # noqa: E402,F401
from portal.models.user import Role, User  # noqa: E402
from portal.storage import UploadStorage  # noqa: E402

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
PDF_BYTES = b'%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n'


class FakeMailer:
    def __init__(self):
        self.sent = []

    async def send(self, to: str, subject: str, html: str) -> bool:
        self.sent.append({'to': to, 'subject': subject, 'html': html})
        return True


def make_upload(data: bytes = PDF_BYTES, filename: str = 'thesis.pdf', content_type: str = 'application/pdf') -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({'content-type': content_type}),
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path):
    return UploadStorage(str(tmp_path / 'uploads'), MAX_UPLOAD_BYTES)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def make_user(db):
    def _make_user(name: str, email: str, role: Role, department: Department | None = None, password: str = 'secret123') -> User:
        user = User(
            name=name,
            email=email,
            hashed_password=hash_password(password),
            role=role.value,
            department_id=department.id if department else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def computing(db):
    department = Department(name='Computing')
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


@pytest.fixture
def physics(db):
    department = Department(name='Physics')
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


@pytest.fixture
def student(make_user, computing):
    return make_user('Sam Student', 'sam@university.com', Role.STUDENT, computing)


@pytest.fixture
def other_student(make_user, computing):
    return make_user('Olive Other', 'olive@university.com', Role.STUDENT, computing)


@pytest.fixture
def professor(make_user, computing):
    return make_user('Pat Professor', 'pat@university.com', Role.PROFESSOR, computing)


@pytest.fixture
def second_professor(make_user, computing):
    return make_user('Quinn Professor', 'quinn@university.com', Role.PROFESSOR, computing)


@pytest.fixture
def physics_professor(make_user, physics):
    return make_user('Riley Physics', 'riley@university.com', Role.PROFESSOR, physics)


@pytest.fixture
def admin(make_user):
    return make_user('Admin', 'admin@university.com', Role.ADMIN)


@pytest.fixture
def upload_file():
    return make_upload
