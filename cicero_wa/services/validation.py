import re
import unicodedata
from typing import Optional, Sequence

from cicero_wa.services.result import Result

NRP_MIN_LENGTH = 6
NRP_MAX_LENGTH = 18

DIGIT_GROUP_PATTERN = re.compile(r"[0-9]+")
WHITESPACE_PATTERN = re.compile(r"\s+")

TEXT_FIELD_RULES = {
    "nama": (2, 100, re.compile(r"^[A-Z .,'\-]+$")),
    "jabatan": (2, 100, re.compile(r"^[A-Z0-9 .,'/&()\-]+$")),
    "desa": (2, 100, re.compile(r"^[A-Z0-9 .,'/\-]+$")),
}
TEXT_FIELD_LABELS = {"nama": "Nama", "jabatan": "Jabatan", "desa": "Desa Binaan"}

INSTAGRAM_URL_PATTERN = re.compile(r"^(?:https?://)?(?:www\.|m\.)?instagram\.com/([^/?#\s]+)", re.IGNORECASE)
TIKTOK_URL_PATTERN = re.compile(r"^(?:https?://)?(?:www\.|m\.|vm\.)?tiktok\.com/@?([^/?#\s]+)", re.IGNORECASE)
INSTAGRAM_USERNAME_PATTERN = re.compile(r"^[a-z0-9._]{1,30}$")
TIKTOK_USERNAME_PATTERN = re.compile(r"^[a-z0-9._]{2,24}$")


def normalize_unicode_digits(text: str) -> str:
    """Map digits of any script (Arabic-Indic, fullwidth, ...) to ASCII."""
    converted = []
    for char in text:
        digit = unicodedata.decimal(char, None)
        converted.append(str(digit) if digit is not None else char)
    return "".join(converted)


def validate_nrp(text: Optional[str]) -> Result[str]:
    raw = normalize_unicode_digits(str(text or "")).strip()
    if not raw:
        return Result.failure("❌ NRP/NIP tidak boleh kosong. Ketik NRP/NIP Anda (hanya angka).", "empty")

    groups = DIGIT_GROUP_PATTERN.findall(raw)
    if len(groups) > 1:
        return Result.failure(
            "\n".join(
                [
                    "❌ Terdeteksi lebih dari satu angka dalam pesan Anda.",
                    "Kirim *NRP/NIP saja* dalam satu balasan, tanpa teks atau nomor lain.",
                    "Contoh: 87020990",
                ]
            ),
            "multiple_numbers",
        )

    compact = WHITESPACE_PATTERN.sub("", raw)
    if not groups or compact != groups[0]:
        return Result.failure(
            "❌ NRP/NIP hanya angka, tanpa huruf atau simbol. Contoh: 87020990", "not_numeric"
        )

    digits = groups[0]
    if not NRP_MIN_LENGTH <= len(digits) <= NRP_MAX_LENGTH:
        return Result.failure(
            f"❌ NRP/NIP harus terdiri dari {NRP_MIN_LENGTH}-{NRP_MAX_LENGTH} digit. "
            f"Anda mengirim {len(digits)} digit.",
            "invalid_length",
        )
    return Result.success(digits)


def validate_text_field(field: str, value: Optional[str]) -> Result[str]:
    """Uppercase and check a free-text profile field (nama, jabatan, desa)."""
    label = TEXT_FIELD_LABELS.get(field, field)
    cleaned = WHITESPACE_PATTERN.sub(" ", str(value or "")).strip().upper()
    if not cleaned:
        return Result.failure(f"❌ {label} tidak boleh kosong.", "empty")

    min_length, max_length, allowed = TEXT_FIELD_RULES.get(field, (1, 100, None))
    if len(cleaned) < min_length:
        return Result.failure(f"❌ {label} minimal {min_length} karakter.", "too_short")
    if len(cleaned) > max_length:
        return Result.failure(f"❌ {label} maksimal {max_length} karakter.", "too_long")
    if allowed is not None and not allowed.match(cleaned):
        return Result.failure(f"❌ {label} mengandung karakter yang tidak diizinkan.", "invalid_chars")
    return Result.success(cleaned)


def _extract_username(value: Optional[str], url_pattern: re.Pattern) -> str:
    raw = str(value or "").strip()
    match = url_pattern.match(raw)
    if match:
        raw = match.group(1)
    return raw.lstrip("@").strip().lower()


def validate_instagram(value: Optional[str]) -> Result[str]:
    username = _extract_username(value, INSTAGRAM_URL_PATTERN)
    if not username:
        return Result.failure(
            "❌ Username Instagram tidak boleh kosong. Contoh: *@username* atau link profil Instagram.",
            "empty",
        )
    if not INSTAGRAM_USERNAME_PATTERN.match(username):
        return Result.failure(
            "❌ Format Instagram tidak valid. Gunakan huruf, angka, titik atau garis bawah (maks 30 karakter).\n"
            "Contoh: *@username* atau https://instagram.com/username",
            "invalid_format",
        )
    return Result.success(username)


def validate_tiktok(value: Optional[str]) -> Result[str]:
    username = _extract_username(value, TIKTOK_URL_PATTERN)
    if not username:
        return Result.failure(
            "❌ Username TikTok tidak boleh kosong. Contoh: *@username* atau link profil TikTok.",
            "empty",
        )
    if not TIKTOK_USERNAME_PATTERN.match(username):
        return Result.failure(
            "❌ Format TikTok tidak valid. Gunakan huruf, angka, titik atau garis bawah (2-24 karakter).\n"
            "Contoh: *@username* atau https://www.tiktok.com/@username",
            "invalid_format",
        )
    return Result.success(username)


def validate_list_selection(value: Optional[str], options: Optional[Sequence[str]]) -> Result[str]:
    """Accept either a 1-based option number or the option name (case-insensitive)."""
    options = list(options or [])
    if not options:
        return Result.failure("❌ Daftar pilihan tidak tersedia. Silakan coba lagi nanti.", "no_options")

    raw = normalize_unicode_digits(str(value or "")).strip()
    if not raw:
        return Result.failure("❌ Pilihan tidak boleh kosong. Balas dengan nomor atau nama pilihan.", "empty")

    if raw.isascii() and raw.isdecimal():
        index = int(raw)
        if 1 <= index <= len(options):
            return Result.success(options[index - 1])
        return Result.failure(
            f"❌ Nomor pilihan harus antara 1 dan {len(options)}.", "out_of_range"
        )

    wanted = raw.upper()
    for option in options:
        if option.upper() == wanted:
            return Result.success(option)
    return Result.failure(
        "❌ Pilihan tidak valid. Balas dengan nomor atau nama persis seperti pada daftar.", "not_in_list"
    )
