from cicero_wa.services.intent_parser import (
    SelectionType,
    YesNoIntent,
    get_intent_parser_hint,
    normalize_user_menu_text,
    parse_affirmative_negative_intent,
    parse_numeric_option_intent,
    parse_numeric_selection_intent,
)


class TestNormalizeText:
    def test_strips_zero_width_and_control_characters(self):
        assert normalize_user_menu_text("\u200b  YA\u200d\x07 \ufeff") == "ya"

    def test_none_becomes_empty(self):
        assert normalize_user_menu_text(None) == ""

    def test_idempotent(self):
        samples = ["  Halo\u200b DUNIA\n", "\x00\x1f batal ", "Pilih 2 dan 5", "\ufeff\u200c", "Ok!"]
        for sample in samples:
            once = normalize_user_menu_text(sample)
            assert normalize_user_menu_text(once) == once


class TestAffirmativeNegative:
    def test_last_token_affirmative(self):
        assert parse_affirmative_negative_intent("terima kasih ya") == YesNoIntent.AFFIRMATIVE

    def test_short_negative(self):
        assert parse_affirmative_negative_intent("ga dulu") == YesNoIntent.NEGATIVE

    def test_long_text_without_decisive_last_token(self):
        assert parse_affirmative_negative_intent("mungkin nanti lagi lagi") is None

    def test_trailing_punctuation_ignored(self):
        assert parse_affirmative_negative_intent("Oke!!") == YesNoIntent.AFFIRMATIVE
        assert parse_affirmative_negative_intent("tidak.") == YesNoIntent.NEGATIVE

    def test_mixed_polarity_in_short_text_is_ambiguous(self):
        assert parse_affirmative_negative_intent("ya tidak juga") is None

    def test_empty(self):
        assert parse_affirmative_negative_intent("   ") is None


class TestNumericSelection:
    def test_multi_not_supported(self):
        intent = parse_numeric_selection_intent("pilih 2 dan 5", 6, allow_batch=False)
        assert intent.type == SelectionType.MULTI_NOT_SUPPORTED
        assert intent.values == [2, 5]

    def test_multi_when_batch_allowed(self):
        intent = parse_numeric_selection_intent("2, 5", 6, allow_batch=True)
        assert intent.type == SelectionType.MULTI
        assert intent.values == [2, 5]

    def test_out_of_range(self):
        intent = parse_numeric_selection_intent("angka 9", 6)
        assert intent.type == SelectionType.OUT_OF_RANGE
        assert intent.values == [9]

    def test_single(self):
        intent = parse_numeric_selection_intent("6", 6)
        assert intent.type == SelectionType.SINGLE
        assert intent.value == 6

    def test_duplicates_collapse_to_single(self):
        intent = parse_numeric_selection_intent("3 3 3", 6)
        assert intent.type == SelectionType.SINGLE
        assert intent.values == [3]

    def test_invalid_and_empty(self):
        assert parse_numeric_selection_intent("abc", 6).type == SelectionType.INVALID
        assert parse_numeric_selection_intent("", 6).type == SelectionType.EMPTY

    def test_zero_is_out_of_range(self):
        assert parse_numeric_selection_intent("0", 6).type == SelectionType.OUT_OF_RANGE

    def test_option_shortcut(self):
        assert parse_numeric_option_intent("4", 6) == 4
        assert parse_numeric_option_intent("4 5", 6) is None


def test_hint_names_step_and_example():
    hint = get_intent_parser_hint("Pilih field yang ingin diupdate", "1..6")
    assert "*Pilih field yang ingin diupdate*" in hint
    assert "*1..6*" in hint
