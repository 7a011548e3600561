"""Persistence boundary for member records.

Callers compute ``next_payment`` with the renewal engine before handing the
fields over; nothing here looks at dates.
"""
import logging
from datetime import timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db, Member, MEMBER_STATUSES

logger = logging.getLogger(__name__)

UNIQUE_FIELDS = ('phone', 'email')

# wire key -> column
FIELD_MAP = {
    'name': 'name',
    'phone': 'phone',
    'email': 'email',
    'plan': 'plan',
    'status': 'status',
    'checkinsThisMonth': 'checkins_this_month',
    'avatarUrl': 'avatar_url',
    'notes': 'notes',
}
OPTIONAL_TEXT = ('email', 'avatar_url', 'notes')


class ValidationError(Exception):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__('; '.join(errors))


class MemberNotFound(Exception):
    def __init__(self, member_id):
        self.member_id = member_id
        super().__init__(f"Member not found: {member_id}")


class MemberConflict(Exception):
    """A unique contact field is already used by another member."""

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Member already exists ({', '.join(fields)})")


def _parse_checkins(value, errors: list[str]):
    if value is None or value == '':
        return 0
    if isinstance(value, bool):
        errors.append('checkinsThisMonth must be a non-negative integer')
        return None
    try:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            value = int(value)
        number = int(value)
    except (TypeError, ValueError):
        errors.append('checkinsThisMonth must be a non-negative integer')
        return None
    if number < 0:
        errors.append('checkinsThisMonth must be a non-negative integer')
        return None
    return number


def normalize_fields(data: dict, creating: bool = False) -> dict:
    """Map a JSON payload onto column values, raising ValidationError on bad input.

    Only keys present in ``data`` are returned, except on create where the
    defaults for status and check-ins are filled in.
    """
    data = data or {}
    errors: list[str] = []
    fields = {}
    for key, column in FIELD_MAP.items():
        if key not in data:
            continue
        value = data.get(key)
        if column == 'checkins_this_month':
            fields[column] = _parse_checkins(value, errors)
            continue
        if value is not None and not isinstance(value, str):
            value = str(value)
        value = (value or '').strip()
        if column in OPTIONAL_TEXT:
            fields[column] = value or None
        else:
            fields[column] = value

    if creating:
        missing = [k for k in ('name', 'phone', 'plan') if not fields.get(k)]
        if missing:
            errors.append(f"{', '.join(missing)} required")
        fields.setdefault('status', 'active')
        fields.setdefault('checkins_this_month', 0)
    else:
        for key in ('name', 'phone', 'plan'):
            if key in fields and not fields[key]:
                errors.append(f"{key} must not be empty")

    if 'status' in fields:
        fields['status'] = fields['status'].lower()
        if not fields['status'] and creating:
            fields['status'] = 'active'
        elif fields['status'] not in MEMBER_STATUSES:
            errors.append(f"status must be one of {', '.join(MEMBER_STATUSES)}")

    if errors:
        raise ValidationError(errors)
    return fields


def _find_conflicts(fields: dict, exclude_id=None) -> list[str]:
    conflicts = []
    for field in UNIQUE_FIELDS:
        value = fields.get(field)
        if not value:
            continue
        query = Member.query.filter(getattr(Member, field) == value)
        if exclude_id is not None:
            query = query.filter(Member.id != exclude_id)
        if query.first() is not None:
            conflicts.append(field)
    return conflicts


def _naive_utc(value):
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _commit(fields: dict, exclude_id=None):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # Lost a race against another writer; field not known precisely
        conflicts = _find_conflicts(fields, exclude_id) or list(UNIQUE_FIELDS)
        raise MemberConflict(conflicts)


def _matches(member: Member, needle: str) -> bool:
    # Literal substring on Python-lowered text; SQLite lower() only folds ASCII
    return any(needle in (value or '').lower() for value in (member.name, member.phone, member.email))


def list_members(search: str | None = None, status: str | None = None) -> list[Member]:
    query = Member.query
    status = (status or '').strip().lower()
    if status and status != 'all':
        query = query.filter(Member.status == status)
    members = query.order_by(Member.created_at.desc(), Member.id.desc()).all()
    q = (search or '').strip().lower()
    if q:
        members = [m for m in members if _matches(m, q)]
    return members


def get_member(member_id) -> Member:
    member = db.session.get(Member, member_id)
    if member is None:
        raise MemberNotFound(member_id)
    return member


def create_member(fields: dict, next_payment) -> Member:
    conflicts = _find_conflicts(fields)
    if conflicts:
        logger.warning("member.create conflict on %s", ', '.join(conflicts))
        raise MemberConflict(conflicts)
    member = Member(next_payment=_naive_utc(next_payment), **fields)
    db.session.add(member)
    _commit(fields)
    logger.info("member.create id=%s plan=%r", member.id, member.plan)
    return member


def update_member(member_id, fields: dict, next_payment) -> Member:
    member = get_member(member_id)
    conflicts = _find_conflicts(fields, exclude_id=member.id)
    if conflicts:
        logger.warning("member.update id=%s conflict on %s", member_id, ', '.join(conflicts))
        raise MemberConflict(conflicts)
    for column, value in fields.items():
        setattr(member, column, value)
    member.next_payment = _naive_utc(next_payment)
    _commit(fields, exclude_id=member.id)
    logger.info("member.update id=%s fields=%s", member.id, sorted(fields))
    return member


def delete_member(member_id) -> None:
    member = get_member(member_id)
    db.session.delete(member)
    db.session.commit()
    logger.info("member.delete id=%s", member_id)


def member_stats() -> dict:
    total = Member.query.count()
    active = Member.query.filter_by(status='active').count()
    overdue = Member.query.filter_by(status='overdue').count()
    checkins = db.session.query(func.coalesce(func.sum(Member.checkins_this_month), 0)).scalar()
    return {
        'total': total,
        'active': active,
        'overdue': overdue,
        'checkinsThisMonth': int(checkins or 0),
    }
