from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

MAX_PROFILE_FIELDS = 4


class NotificationType(str, Enum):
    MENTION = "mention"
    STATUS = "status"
    REBLOG = "reblog"
    FOLLOW = "follow"
    FOLLOW_REQUEST = "follow_request"
    FAVOURITE = "favourite"
    POLL = "poll"
    UPDATE = "update"
    ADMIN_SIGN_UP = "admin.sign_up"
    ADMIN_REPORT = "admin.report"


class FollowRelationType(str, Enum):
    FOLLOWED = "followed"
    UNFOLLOWED = "unfollowed"
    FOLLOW_REQUESTED = "follow_requested"


def _date_to_text(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _text_to_date(s: str | None) -> date | None:
    return date.fromisoformat(s) if s else None


@dataclass(frozen=True)
class ProfileField:
    name: str
    value: str


def _check_fields(fields: tuple[ProfileField, ...]) -> None:
    if len(fields) > MAX_PROFILE_FIELDS:
        raise ValueError(f"a profile holds at most {MAX_PROFILE_FIELDS} fields, got {len(fields)}")


def _flatten_fields(fields: tuple[ProfileField, ...]) -> dict:
    out: dict = {}
    for i in range(MAX_PROFILE_FIELDS):
        f = fields[i] if i < len(fields) else None
        out[f"field_name_{i + 1}"] = f.name if f else None
        out[f"field_value_{i + 1}"] = f.value if f else None
    return out


def _unflatten_fields(row) -> tuple[ProfileField, ...]:
    fields = []
    for i in range(1, MAX_PROFILE_FIELDS + 1):
        name = row[f"field_name_{i}"]
        value = row[f"field_value_{i}"]
        # Unused slots are stored as NULL pairs
        if name is None and value is None:
            continue
        fields.append(ProfileField(name or "", value or ""))
    return tuple(fields)


@dataclass(frozen=True)
class ProfileFtsRow:
    """Text columns of a profile as mirrored into profiles_fts."""

    user_id: str
    user_name: str
    instance: str
    uri: str
    fields: tuple[ProfileField, ...] = ()
    profile_text: str = ""

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        _check_fields(self.fields)

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "user_name": self.user_name,
            "instance": self.instance,
            "uri": self.uri,
            **_flatten_fields(self.fields),
            "profile_text": self.profile_text,
        }


@dataclass(frozen=True)
class Profile:
    """One remote account known to the tool.

    ``fts_rowid`` stays None until the profile's profiles_fts row has been
    linked back to it.
    """

    user_id: str
    acct_id: int
    user_name: str
    instance: str
    uri: str
    fields: tuple[ProfileField, ...] = ()
    profile_text: str = ""
    earliest_notification: date | None = None
    is_loginable: bool = False
    has_been_tested: bool = False
    fts_rowid: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        _check_fields(self.fields)

    def to_fts_row(self) -> ProfileFtsRow:
        return ProfileFtsRow(
            user_id=self.user_id,
            user_name=self.user_name,
            instance=self.instance,
            uri=self.uri,
            fields=self.fields,
            profile_text=self.profile_text,
        )

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "fts_rowid": self.fts_rowid,
            "acct_id": self.acct_id,
            "user_name": self.user_name,
            "instance": self.instance,
            "uri": self.uri,
            **_flatten_fields(self.fields),
            "profile_text": self.profile_text,
            "earliest_notif": _date_to_text(self.earliest_notification),
            "loginable": int(self.is_loginable),
            "tested": int(self.has_been_tested),
        }

    @classmethod
    def from_row(cls, row) -> "Profile":
        return cls(
            user_id=row["user_id"],
            acct_id=row["acct_id"],
            user_name=row["user_name"],
            instance=row["instance"],
            uri=row["uri"],
            fields=_unflatten_fields(row),
            profile_text=row["profile_text"],
            earliest_notification=_text_to_date(row["earliest_notif"]),
            is_loginable=bool(row["loginable"]),
            has_been_tested=bool(row["tested"]),
            fts_rowid=row["fts_rowid"],
        )


@dataclass(frozen=True)
class Notification:
    from_user_id: str
    to_user_id: str
    created_at: date
    notification_type: NotificationType
    status_uri: str | None = None

    def to_row(self) -> dict:
        return {
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "created_at": _date_to_text(self.created_at),
            "notif_type": NotificationType(self.notification_type).value,
            "status_uri": self.status_uri,
        }

    @classmethod
    def from_row(cls, row) -> "Notification":
        return cls(
            from_user_id=row["from_user_id"],
            to_user_id=row["to_user_id"],
            created_at=_text_to_date(row["created_at"]),
            notification_type=NotificationType(row["notif_type"]),
            status_uri=row["status_uri"],
        )


@dataclass(frozen=True)
class Follow:
    by_user_id: str
    of_user_id: str
    last_event: date
    relation_type: FollowRelationType = FollowRelationType.FOLLOWED

    def to_row(self) -> dict:
        return {
            "by_user_id": self.by_user_id,
            "of_user_id": self.of_user_id,
            "last_event": _date_to_text(self.last_event),
            "relation_type": FollowRelationType(self.relation_type).value,
        }

    @classmethod
    def from_row(cls, row) -> "Follow":
        return cls(
            by_user_id=row["by_user_id"],
            of_user_id=row["of_user_id"],
            last_event=_text_to_date(row["last_event"]),
            relation_type=FollowRelationType(row["relation_type"]),
        )
