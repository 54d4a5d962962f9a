import os

import pytest
from fastapi import HTTPException

from portal import workflow
from portal.models.assignment import Assignment, AssignmentStatus, ReviewRecord
from portal.models.notification import Notification


@pytest.fixture
def draft(db, storage, student, upload_file):
    return workflow.create_draft(db, storage, student, 'Thesis A', 'Final thesis', 'Thesis', upload_file())


@pytest.fixture
def submitted(db, draft, student, professor):
    workflow.submit(db, draft, student, professor.id, 'Please review')
    return draft


def test_create_draft_stores_file_and_starts_in_draft(db, draft, student) -> None:
    assert draft.status == AssignmentStatus.DRAFT.value
    assert draft.owner_id == student.id
    assert draft.category == 'Thesis'
    assert draft.reviewer_id is None
    assert draft.file_original_name == 'thesis.pdf'
    assert os.path.exists(draft.file_path)


def test_create_draft_requires_title_and_category(db, storage, student, upload_file) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.create_draft(db, storage, student, '  ', '', 'Thesis', upload_file())

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Title and Category are required.'
    assert os.listdir(storage.root) == []


def test_create_draft_rejects_unknown_category(db, storage, student, upload_file) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.create_draft(db, storage, student, 'Essay', '', 'Poem', upload_file())

    assert exception_info.value.detail == 'Invalid category.'


def test_submit_records_reviewer_and_notifies_professor(db, draft, student, professor) -> None:
    notification = workflow.submit(db, draft, student, professor.id, ' Please review ')

    assert draft.status == AssignmentStatus.SUBMITTED.value
    assert draft.reviewer_id == professor.id
    assert draft.reviewer_name == 'Pat Professor'
    assert draft.submitted_at is not None
    assert draft.student_message == 'Please review'
    assert notification.user_id == professor.id
    assert notification.assignment_id == draft.id


def test_submit_rejects_reviewer_from_other_department(db, draft, student, physics_professor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.submit(db, draft, student, physics_professor.id)

    db.refresh(draft)
    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Reviewer must belong to your department.'
    assert draft.status == AssignmentStatus.DRAFT.value
    assert draft.reviewer_id is None
    assert db.query(Notification).count() == 0


def test_submit_rejects_reviewer_who_is_not_a_professor(db, draft, student, other_student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.submit(db, draft, student, other_student.id)

    assert exception_info.value.status_code == 400
    assert draft.status == AssignmentStatus.DRAFT.value


def test_submit_rejects_unknown_reviewer(db, draft, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.submit(db, draft, student, 9999)

    assert exception_info.value.status_code == 404


def test_submit_requires_a_reviewer(db, draft, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.submit(db, draft, student, None)

    assert exception_info.value.detail == 'Please select a reviewer.'


def test_submit_rejects_non_owner(db, draft, other_student, professor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.submit(db, draft, other_student, professor.id)

    assert exception_info.value.status_code == 403
    assert draft.status == AssignmentStatus.DRAFT.value


def test_submit_rejects_already_submitted_assignment(db, submitted, student, professor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.submit(db, submitted, student, professor.id)

    assert exception_info.value.status_code == 409


def test_approve_scenario_notifies_student_and_blocks_delete(db, storage, submitted, student, professor) -> None:
    notification = workflow.decide(db, submitted, professor, 'Approved', 'Well done')

    assert submitted.status == AssignmentStatus.APPROVED.value
    assert submitted.rejection_remarks == ''
    assert notification.user_id == student.id
    assert notification.title == 'Assignment Approved'

    records = db.query(ReviewRecord).filter(ReviewRecord.assignment_id == submitted.id).all()
    assert [record.action for record in records] == ['Approved']

    with pytest.raises(HTTPException) as exception_info:
        workflow.delete(db, storage, submitted, student)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'Approved assignments cannot be deleted.'
    assert db.get(Assignment, submitted.id) is not None


def test_reject_stores_remarks(db, submitted, professor) -> None:
    workflow.decide(db, submitted, professor, 'rejected', ' Missing references ')

    assert submitted.status == AssignmentStatus.REJECTED.value
    assert submitted.rejection_remarks == 'Missing references'


def test_decide_by_other_professor_is_rejected(db, submitted, second_professor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.decide(db, submitted, second_professor, 'Approved')

    db.refresh(submitted)
    assert exception_info.value.status_code == 403
    assert submitted.status == AssignmentStatus.SUBMITTED.value
    assert db.query(ReviewRecord).count() == 0


def test_decide_is_refused_after_reviewer_changes_department(db, submitted, professor, physics) -> None:
    professor.department_id = physics.id
    db.commit()

    with pytest.raises(HTTPException) as exception_info:
        workflow.decide(db, submitted, professor, 'Approved')

    db.refresh(submitted)
    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == "Reviewer must belong to the student's department."
    assert submitted.status == AssignmentStatus.SUBMITTED.value


def test_decide_rejects_invalid_verdict(db, submitted, professor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.decide(db, submitted, professor, 'Draft')

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Invalid action.'


@pytest.mark.parametrize('first_verdict', ['Approved', 'Rejected'])
def test_decide_requires_submitted_status(db, submitted, professor, first_verdict: str) -> None:
    workflow.decide(db, submitted, professor, first_verdict, 'First pass')

    with pytest.raises(HTTPException) as exception_info:
        workflow.decide(db, submitted, professor, 'Approved')

    assert exception_info.value.status_code == 409
    assert submitted.status == first_verdict
    assert db.query(ReviewRecord).count() == 1


def test_concurrent_decision_on_stale_row_is_rejected(db, session_factory, submitted, professor) -> None:
    other_session = session_factory()
    try:
        stale = other_session.get(Assignment, submitted.id)
        assert stale.status == AssignmentStatus.SUBMITTED.value

        workflow.decide(db, submitted, professor, 'Approved')

        with pytest.raises(HTTPException) as exception_info:
            workflow.decide(other_session, stale, professor, 'Rejected', 'Too late')

        assert exception_info.value.status_code == 409
    finally:
        other_session.close()

    db.refresh(submitted)
    assert submitted.status == AssignmentStatus.APPROVED.value
    assert db.query(ReviewRecord).count() == 1


def test_rejected_assignment_can_be_edited_and_resubmitted(db, storage, submitted, student, professor, upload_file) -> None:
    workflow.decide(db, submitted, professor, 'Rejected', 'Add a summary')
    old_path = submitted.file_path

    workflow.edit(
        db,
        storage,
        submitted,
        student,
        'Thesis A (revised)',
        'Now with a summary',
        'Thesis',
        upload_file(filename='thesis-v2.pdf'),
    )

    assert submitted.title == 'Thesis A (revised)'
    assert submitted.file_original_name == 'thesis-v2.pdf'
    assert not os.path.exists(old_path)
    assert os.path.exists(submitted.file_path)
    assert [version.original_name for version in submitted.file_versions] == ['thesis.pdf']

    workflow.submit(db, submitted, student, professor.id)

    assert submitted.status == AssignmentStatus.SUBMITTED.value
    assert submitted.rejection_remarks == ''


def test_edit_without_file_keeps_existing_file(db, storage, draft, student) -> None:
    original_path = draft.file_path

    workflow.edit(db, storage, draft, student, 'Renamed', '', 'Report')

    assert draft.title == 'Renamed'
    assert draft.category == 'Report'
    assert draft.file_path == original_path
    assert draft.file_versions == []


def test_edit_rejects_submitted_assignment(db, storage, submitted, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.edit(db, storage, submitted, student, 'Changed', '', 'Thesis')

    assert exception_info.value.status_code == 409
    db.refresh(submitted)
    assert submitted.title == 'Thesis A'


def test_edit_rejects_non_owner(db, storage, draft, other_student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.edit(db, storage, draft, other_student, 'Changed', '', 'Thesis')

    assert exception_info.value.status_code == 403


def test_edit_with_invalid_file_leaves_assignment_unchanged(db, storage, draft, student, upload_file) -> None:
    original_path = draft.file_path

    with pytest.raises(HTTPException) as exception_info:
        workflow.edit(db, storage, draft, student, 'Changed', '', 'Thesis', upload_file(filename='notes.txt', content_type='text/plain'))

    db.refresh(draft)
    assert exception_info.value.status_code == 400
    assert draft.title == 'Thesis A'
    assert draft.file_path == original_path


def test_delete_twice_returns_not_found(db, storage, draft, student) -> None:
    assignment_id = draft.id
    file_path = draft.file_path

    workflow.delete(db, storage, draft, student)

    assert not os.path.exists(file_path)
    with pytest.raises(HTTPException) as exception_info:
        workflow.get_assignment_or_404(db, assignment_id)

    assert exception_info.value.status_code == 404


def test_delete_unlinks_notifications(db, storage, submitted, student, professor) -> None:
    assignment_id = submitted.id

    workflow.delete(db, storage, submitted, student)

    notification = db.query(Notification).filter(Notification.user_id == professor.id).one()
    assert notification.title == 'New assignment to review'
    assert notification.assignment_id is None
    assert db.query(Notification).filter(Notification.assignment_id == assignment_id).count() == 0


def test_delete_rejects_non_owner(db, storage, draft, other_student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        workflow.delete(db, storage, draft, other_student)

    assert exception_info.value.status_code == 403
    assert db.get(Assignment, draft.id) is not None


@pytest.mark.parametrize(
    ('current', 'target', 'allowed'),
    [
        (AssignmentStatus.DRAFT, AssignmentStatus.SUBMITTED, True),
        (AssignmentStatus.DRAFT, AssignmentStatus.APPROVED, False),
        (AssignmentStatus.SUBMITTED, AssignmentStatus.REJECTED, True),
        (AssignmentStatus.REJECTED, AssignmentStatus.SUBMITTED, True),
        (AssignmentStatus.REJECTED, AssignmentStatus.APPROVED, False),
        (AssignmentStatus.APPROVED, AssignmentStatus.SUBMITTED, False),
    ],
)
def test_validate_transition(current: AssignmentStatus, target: AssignmentStatus, allowed: bool) -> None:
    if allowed:
        workflow.validate_transition(current, target)
        return

    with pytest.raises(HTTPException) as exception_info:
        workflow.validate_transition(current, target)

    assert exception_info.value.status_code == 409


def test_count_by_status_includes_every_state(db, submitted, student) -> None:
    counts = workflow.count_by_status(db, Assignment.owner_id == student.id)

    assert counts == {'Draft': 0, 'Submitted': 1, 'Approved': 0, 'Rejected': 0}
