from typing import Any, Callable, Optional, Protocol, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cicero_wa.database import SessionLocal
from cicero_wa.logging_config import get_logger
from cicero_wa.models import User
from cicero_wa.services.menu_helpers import normalize_whatsapp_number

logger = get_logger("user_model")

UPDATABLE_FIELDS = {"nama", "title", "divisi", "jabatan", "desa", "insta", "tiktok", "whatsapp"}
SOCIAL_PLATFORM_FIELDS = {"instagram": "insta", "insta": "insta", "tiktok": "tiktok"}

# Units every Polres has, even before any personnel record mentions them.
STATIC_DIVISIONS = [
    "BAG OPS",
    "BAG REN",
    "BAG SDM",
    "BAG LOG",
    "SAT INTELKAM",
    "SAT RESKRIM",
    "SAT RESNARKOBA",
    "SAT LANTAS",
    "SAT SAMAPTA",
    "SAT BINMAS",
    "SAT TAHTI",
    "SIUM",
    "SIKEU",
    "SIPROPAM",
    "SIHUMAS",
    "SPKT",
]

UserRecord = dict[str, Any]


class DuplicateWhatsAppError(Exception):
    """The WhatsApp number is already linked to another personnel record."""

    def __init__(self, whatsapp: str, message: str = "Nomor WhatsApp ini sudah terdaftar pada akun lain"):
        self.whatsapp = whatsapp
        super().__init__(message)


class UserModel(Protocol):
    async def find_user_by_whatsapp(self, whatsapp: str) -> Optional[UserRecord]: ...

    async def find_user_registration_profile_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def find_user_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def update_user_field(self, user_id: str, field: str, value: Any) -> Optional[UserRecord]: ...

    async def find_user_by_social_handle(self, platform: str, handle: str) -> Optional[UserRecord]: ...

    async def get_available_titles(self) -> list[str]: ...

    async def get_available_satfung(self, client_id: Optional[str]) -> list[str]: ...

    def merge_static_divisions(self, items: Optional[Sequence[str]]) -> list[str]: ...


def merge_static_divisions(items: Optional[Sequence[str]]) -> list[str]:
    """Union of the given divisions and STATIC_DIVISIONS, de-duplicated case-insensitively."""
    merged: dict[str, str] = {}
    for item in list(items or []) + STATIC_DIVISIONS:
        name = str(item or "").strip()
        if name and name.upper() not in merged:
            merged[name.upper()] = name
    return list(merged.values())


def user_to_dict(user: User) -> UserRecord:
    return {
        "user_id": user.user_id,
        "client_id": user.client_id,
        "client_name": user.client.nama if user.client is not None else None,
        "nama": user.nama,
        "title": user.title,
        "divisi": user.divisi,
        "jabatan": user.jabatan,
        "desa": user.desa,
        "insta": user.insta,
        "tiktok": user.tiktok,
        "whatsapp": user.whatsapp,
        "status": bool(user.status),
        "ditbinmas": bool(user.ditbinmas),
    }


class SqlUserModel:
    """Personnel store backed by the ``users`` table."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def find_user_by_whatsapp(self, whatsapp: str) -> Optional[UserRecord]:
        number = normalize_whatsapp_number(whatsapp)
        if not number:
            return None
        db = self.session_factory()
        try:
            user = db.execute(select(User).where(User.whatsapp == number)).scalars().first()
            return user_to_dict(user) if user is not None else None
        finally:
            db.close()

    async def find_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        db = self.session_factory()
        try:
            user = db.get(User, str(user_id))
            return user_to_dict(user) if user is not None else None
        finally:
            db.close()

    async def find_user_registration_profile_by_id(self, user_id: str) -> Optional[UserRecord]:
        user = await self.find_user_by_id(user_id)
        if user is None:
            return None
        return {key: user[key] for key in ("user_id", "nama", "whatsapp", "status", "client_id")}

    async def update_user_field(self, user_id: str, field: str, value: Any) -> Optional[UserRecord]:
        if field not in UPDATABLE_FIELDS:
            raise ValueError(f"Field {field!r} cannot be updated")
        if field == "whatsapp":
            value = normalize_whatsapp_number(value)

        db = self.session_factory()
        try:
            user = db.get(User, str(user_id))
            if user is None:
                raise LookupError(f"User {user_id} not found")

            if field == "whatsapp" and value:
                owner = db.execute(
                    select(User.user_id).where(User.whatsapp == value, User.user_id != user.user_id)
                ).scalar()
                if owner is not None:
                    raise DuplicateWhatsAppError(value)

            setattr(user, field, value)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                if field == "whatsapp":
                    raise DuplicateWhatsAppError(value) from exc
                raise

            db.refresh(user)
            logger.info(
                "User field updated",
                extra={"context": {"user_id": user.user_id, "field": field}},
            )
            return user_to_dict(user)
        finally:
            db.close()

    async def find_user_by_social_handle(self, platform: str, handle: str) -> Optional[UserRecord]:
        column_name = SOCIAL_PLATFORM_FIELDS.get(platform.lower())
        if column_name is None:
            raise ValueError(f"Unknown social platform {platform!r}")
        username = str(handle or "").strip().lstrip("@").lower()
        if not username:
            return None

        column = getattr(User, column_name)
        db = self.session_factory()
        try:
            user = (
                db.execute(select(User).where(func.lower(func.trim(column)).in_([username, f"@{username}"])))
                .scalars()
                .first()
            )
            return user_to_dict(user) if user is not None else None
        finally:
            db.close()

    async def get_available_titles(self) -> list[str]:
        db = self.session_factory()
        try:
            rows = db.execute(select(User.title).where(User.title.is_not(None)).distinct()).scalars().all()
            return sorted({title.strip().upper() for title in rows if title and title.strip()})
        finally:
            db.close()

    async def get_available_satfung(self, client_id: Optional[str]) -> list[str]:
        db = self.session_factory()
        try:
            query = select(User.divisi).where(User.divisi.is_not(None))
            if client_id:
                query = query.where(User.client_id == client_id)
            rows = db.execute(query.distinct()).scalars().all()
            return sorted({divisi.strip().upper() for divisi in rows if divisi and divisi.strip()})
        finally:
            db.close()

    def merge_static_divisions(self, items: Optional[Sequence[str]]) -> list[str]:
        return merge_static_divisions(items)
