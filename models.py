import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

from renewal import renewal_info

db = SQLAlchemy()

MEMBER_STATUSES = ('active', 'inactive', 'overdue')


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow_naive() -> datetime:
    # Stored as naive UTC; SQLite drops tzinfo anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec='milliseconds') + 'Z'


class Member(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(120), nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=True, unique=True)
    plan = db.Column(db.String(120), nullable=False)
    next_payment = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active', index=True)
    checkins_this_month = db.Column(db.Integer, nullable=False, default=0)
    avatar_url = db.Column(db.String(1000), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow_naive, index=True)

    __table_args__ = (
        db.CheckConstraint('checkins_this_month >= 0', name='ck_member_checkins_non_negative'),
    )

    def to_dict(self, now: datetime | None = None):
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "plan": self.plan,
            "nextPayment": _iso(self.next_payment),
            "status": self.status,
            "checkinsThisMonth": self.checkins_this_month or 0,
            "avatarUrl": self.avatar_url,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
            # Derived for display only, never persisted
            "renewal": renewal_info(self.next_payment, now),
        }

    def __repr__(self):
        return f"<Member {self.id} {self.name!r}>"
