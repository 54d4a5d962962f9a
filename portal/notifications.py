from sqlalchemy.orm import Session

from portal.models.notification import Notification


def notify(
    db: Session,
    user_id: int,
    title: str,
    message: str = '',
    assignment_id: int | None = None,
) -> Notification:
    """Queue a notification in the caller's transaction; the caller commits."""
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        assignment_id=assignment_id,
        is_read=False,
    )
    db.add(notification)
    return notification


def unread_count(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).count()
