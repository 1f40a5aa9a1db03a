"""Formatting helpers for the user menu conversation."""

import re
from datetime import datetime
from typing import Any, Optional, Sequence
from zoneinfo import ZoneInfo

JAKARTA_TZ = ZoneInfo("Asia/Jakarta")

NON_DIGIT_PATTERN = re.compile(r"\D")

UPDATE_FIELDS = [
    ("nama", "Nama"),
    ("pangkat", "Pangkat"),
    ("satfung", "Satfung"),
    ("jabatan", "Jabatan"),
    ("insta", "Instagram"),
    ("tiktok", "TikTok"),
]
DITBINMAS_FIELDS = [("desa", "Desa Binaan")]

# Menu keys that are stored under a different column name.
DB_FIELD_NAMES = {"pangkat": "title", "satfung": "divisi"}

FIELD_DISPLAY_NAMES = {
    "nama": "Nama",
    "title": "Pangkat",
    "pangkat": "Pangkat",
    "divisi": "Satfung",
    "satfung": "Satfung",
    "jabatan": "Jabatan",
    "insta": "Instagram",
    "tiktok": "TikTok",
    "desa": "Desa Binaan",
    "whatsapp": "WhatsApp",
}

SOCIAL_FIELDS = {"insta", "tiktok"}

TITLE_ORDER = [
    "KOMJEN",
    "IRJEN",
    "BRIGJEN",
    "KOMBES",
    "AKBP",
    "KOMPOL",
    "AKP",
    "IPTU",
    "IPDA",
    "AIPTU",
    "AIPDA",
    "BRIPKA",
    "BRIGPOL",
    "BRIPTU",
    "BRIPDA",
    "ABRIP",
    "ABRIPTU",
    "ABRIPDA",
    "BHARAKA",
    "BHARATU",
    "BHARADA",
    "PEMBINA",
    "PENATA",
    "PENGATUR",
    "JURU",
    "PPPK",
    "PHL",
]

DIVISION_ORDER = [
    "BAG OPS",
    "BAG REN",
    "BAG SDM",
    "BAG LOG",
    "SAT INTELKAM",
    "SAT RESKRIM",
    "SAT RESNARKOBA",
    "SAT LANTAS",
    "SAT SAMAPTA",
    "SAT PAMOBVIT",
    "SAT POLAIRUD",
    "SAT BINMAS",
    "SAT TAHTI",
    "SIUM",
    "SIKEU",
    "SIPROPAM",
    "SIHUMAS",
    "SIKUM",
    "SITIK",
    "SPKT",
]
POLSEK_PREFIX = "POLSEK"


def normalize_whatsapp_number(value: Optional[str]) -> str:
    """Reduce a JID or phone number to bare digits with the 62 country prefix."""
    raw = str(value or "").split("@", 1)[0]
    digits = NON_DIGIT_PATTERN.sub("", raw)
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    return digits


def get_update_fields(is_ditbinmas: bool) -> list[tuple[str, str]]:
    if is_ditbinmas:
        return UPDATE_FIELDS + DITBINMAS_FIELDS
    return list(UPDATE_FIELDS)


def get_db_field_name(field: str) -> str:
    return DB_FIELD_NAMES.get(field, field)


def get_field_display_name(field: str) -> str:
    return FIELD_DISPLAY_NAMES.get(field, field)


def format_duration(seconds: float) -> str:
    """Whole minutes from one minute up, seconds below that."""
    seconds = max(int(round(seconds)), 0)
    if seconds < 60:
        return f"{seconds} detik"
    return f"{round(seconds / 60)} menit"


def get_greeting(now: Optional[datetime] = None) -> str:
    hour = (now or datetime.now(JAKARTA_TZ)).astimezone(JAKARTA_TZ).hour
    if hour < 11:
        return "Selamat pagi"
    if hour < 15:
        return "Selamat siang"
    if hour < 18:
        return "Selamat sore"
    return "Selamat malam"


def _rank(order: list[str], key: str) -> int:
    try:
        return order.index(key)
    except ValueError:
        return len(order)


def sort_title_keys(titles: Sequence[str]) -> list[str]:
    """Known ranks in seniority order, anything else alphabetically after them."""
    return sorted(titles, key=lambda title: (_rank(TITLE_ORDER, title.upper()), title.upper()))


def sort_division_keys(divisions: Sequence[str]) -> list[str]:
    """Headquarters units in a fixed order, then other units, then POLSEK alphabetically."""

    def sort_key(division: str):
        upper = division.upper()
        if upper.startswith(POLSEK_PREFIX):
            return (2, 0, upper)
        position = _rank(DIVISION_ORDER, upper)
        if position < len(DIVISION_ORDER):
            return (0, position, upper)
        return (1, 0, upper)

    return sorted(divisions, key=sort_key)


def format_social_handle(value: Optional[str]) -> str:
    handle = str(value or "").strip()
    if not handle:
        return "-"
    return handle if handle.startswith("@") else f"@{handle}"


def _display(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    return text or "-"


def format_user_report(user: dict[str, Any]) -> str:
    lines = [
        "👤 *Data Pengguna*",
        f"*Polres*   : {_display(user.get('client_name') or user.get('client_id'))}",
        f"*NRP/NIP*  : {_display(user.get('user_id'))}",
        f"*Nama*     : {_display(user.get('nama'))}",
        f"*Pangkat*  : {_display(user.get('title'))}",
        f"*Satfung*  : {_display(user.get('divisi'))}",
        f"*Jabatan*  : {_display(user.get('jabatan'))}",
    ]
    if user.get("ditbinmas"):
        lines.append(f"*Desa*     : {_display(user.get('desa'))}")
    lines.extend(
        [
            f"*Instagram*: {format_social_handle(user.get('insta'))}",
            f"*TikTok*   : {format_social_handle(user.get('tiktok'))}",
            f"*Status*   : {'🟢 AKTIF' if user.get('status') else '🔴 NONAKTIF'}",
        ]
    )
    return "\n".join(lines)


def format_field_list(is_ditbinmas: bool) -> str:
    fields = get_update_fields(is_ditbinmas)
    lines = ["📝 *Pilih Field yang Ingin Diupdate*", ""]
    lines.extend(f"{index}. {label}" for index, (_, label) in enumerate(fields, start=1))
    lines.extend(
        [
            "",
            f"Balas dengan *angka* (1-{len(fields)}).",
            "Ketik *batal* untuk keluar.",
        ]
    )
    return "\n".join(lines)


def get_field_info(field: str, user: Optional[dict[str, Any]]) -> dict[str, str]:
    db_field = get_db_field_name(field)
    raw = (user or {}).get(db_field)
    if db_field in SOCIAL_FIELDS:
        value = format_social_handle(raw)
    else:
        value = _display(raw)
    return {"displayName": get_field_display_name(db_field), "value": value}


def format_field_update_prompt(field: str, label: str, current_value: str) -> str:
    examples = {
        "nama": "BUDI SANTOSO",
        "pangkat": "nomor atau nama pangkat dari daftar",
        "satfung": "nomor atau nama satfung dari daftar",
        "jabatan": "KASAT BINMAS",
        "insta": "@username atau link profil Instagram",
        "tiktok": "@username atau link profil TikTok",
        "desa": "DESA SUKAMAJU",
    }
    lines = [
        f"✏️ *Update {label}*",
        "",
        f"Nilai saat ini: *{current_value}*",
        "",
        f"Ketik {label.lower()} baru Anda.",
    ]
    if field in examples:
        lines.append(f"Contoh: {examples[field]}")
    lines.extend(["", "Ketik *menu* untuk kembali ke daftar field atau *batal* untuk keluar."])
    return "\n".join(lines)


def format_update_success(field_display_name: str, display_value: str, user_id: str) -> str:
    return "\n".join(
        [
            "✅ *Data Berhasil Diperbarui*",
            "",
            f"*{field_display_name}* untuk NRP/NIP *{user_id}* berhasil diupdate menjadi *{display_value}*.",
        ]
    )


def format_options_list(options: Sequence[str], title: str) -> str:
    lines = [f"📋 *{title}*", ""]
    lines.extend(f"{index}. {option}" for index, option in enumerate(options, start=1))
    lines.extend(["", "Balas dengan nomor atau nama pilihan."])
    return "\n".join(lines)
