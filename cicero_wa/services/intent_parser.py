import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

AFFIRMATIVE_WORDS = frozenset({"ya", "iya", "y", "ok", "oke"})
NEGATIVE_WORDS = frozenset({"tidak", "ga", "gak", "n"})

ZERO_WIDTH_PATTERN = re.compile(r"[\u200b-\u200d\ufeff]")
TRAILING_PUNCTUATION_PATTERN = re.compile(r"[.,!?;:]+$")
NON_WORD_PATTERN = re.compile(r"[^\w-]")
DIGIT_RUN_PATTERN = re.compile(r"\d+")


class YesNoIntent(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"


class SelectionType(str, Enum):
    EMPTY = "empty"
    INVALID = "invalid"
    OUT_OF_RANGE = "out_of_range"
    MULTI_NOT_SUPPORTED = "multi_not_supported"
    MULTI = "multi"
    SINGLE = "single"


@dataclass
class SelectionIntent:
    type: SelectionType
    values: list[int] = field(default_factory=list)

    @property
    def value(self) -> Optional[int]:
        if self.type == SelectionType.SINGLE:
            return self.values[0]
        return None


def normalize_user_menu_text(text: Optional[str]) -> str:
    """Drop zero-width and control characters, trim and lowercase."""
    without_zero_width = ZERO_WIDTH_PATTERN.sub("", text or "")
    printable = "".join(char for char in without_zero_width if not (ord(char) <= 31 or ord(char) == 127))
    return printable.strip().lower()


def _normalize_token(token: str) -> str:
    token = TRAILING_PUNCTUATION_PATTERN.sub("", token.lower())
    return NON_WORD_PATTERN.sub("", token)


def parse_affirmative_negative_intent(text: Optional[str]) -> Optional[YesNoIntent]:
    """Classify a short reply as yes/no.

    The last token decides first, so trailing confirmations like "baik ya" work.
    Replies of up to three tokens fall back to whichever polarity appears alone.
    """
    normalized = normalize_user_menu_text(text)
    if not normalized:
        return None

    tokens = [token for token in (_normalize_token(raw) for raw in normalized.split()) if token]
    if not tokens:
        return None

    last_token = tokens[-1]
    if last_token in AFFIRMATIVE_WORDS:
        return YesNoIntent.AFFIRMATIVE
    if last_token in NEGATIVE_WORDS:
        return YesNoIntent.NEGATIVE

    if len(tokens) <= 3:
        has_affirmative = any(token in AFFIRMATIVE_WORDS for token in tokens)
        has_negative = any(token in NEGATIVE_WORDS for token in tokens)
        if has_affirmative and not has_negative:
            return YesNoIntent.AFFIRMATIVE
        if has_negative and not has_affirmative:
            return YesNoIntent.NEGATIVE

    return None


def parse_numeric_selection_intent(
    text: Optional[str],
    max_option: int,
    *,
    allow_batch: bool = False,
) -> SelectionIntent:
    normalized = normalize_user_menu_text(text)
    if not normalized:
        return SelectionIntent(SelectionType.EMPTY)

    tokens = DIGIT_RUN_PATTERN.findall(normalized)
    if not tokens:
        return SelectionIntent(SelectionType.INVALID)

    values = list(dict.fromkeys(int(token) for token in tokens))

    if any(value < 1 or value > max_option for value in values):
        return SelectionIntent(SelectionType.OUT_OF_RANGE, values)

    if len(values) > 1:
        if not allow_batch:
            return SelectionIntent(SelectionType.MULTI_NOT_SUPPORTED, values)
        return SelectionIntent(SelectionType.MULTI, values)

    return SelectionIntent(SelectionType.SINGLE, values)


def parse_numeric_option_intent(text: Optional[str], max_option: int) -> Optional[int]:
    return parse_numeric_selection_intent(text, max_option).value


def get_intent_parser_hint(step: str, example: str) -> str:
    return "\n".join(
        [
            "❌ Input tidak sesuai langkah saat ini.",
            f"🧭 Menu aktif saat ini: *{step}*",
            f"💬 Contoh jawaban: *{example}*",
        ]
    )


USER_MENU_INTENT_SYNONYMS = {
    YesNoIntent.AFFIRMATIVE.value: sorted(AFFIRMATIVE_WORDS),
    YesNoIntent.NEGATIVE.value: sorted(NEGATIVE_WORDS),
}
