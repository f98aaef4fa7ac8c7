import re

from edgescore.models.enums import PickType, Side
from edgescore.pipeline.dedup import DEDUP_KEY_LENGTH, compute_dedup_key


def test_dedup_key_is_fixed_length_hex() -> None:
    key = compute_dedup_key(1, 42, "spread", "home", "Jane Doe")
    assert len(key) == DEDUP_KEY_LENGTH == 32
    assert re.fullmatch(r"[0-9a-f]{32}", key)


def test_picker_name_is_case_and_whitespace_insensitive() -> None:
    base = compute_dedup_key(1, 42, "spread", "home", "Jane Doe")
    assert compute_dedup_key(1, 42, "spread", "home", "  JANE DOE ") == base
    assert compute_dedup_key(1, 42, "spread", "home", "jane doe") == base


def test_enum_members_hash_like_their_values() -> None:
    assert compute_dedup_key(1, 42, PickType.SPREAD, Side.HOME, "Jane Doe") == compute_dedup_key(
        1, 42, "spread", "home", "Jane Doe"
    )


def test_changing_any_field_changes_the_key() -> None:
    base = compute_dedup_key(1, 42, "spread", "home", "Jane Doe")
    variants = [
        compute_dedup_key(2, 42, "spread", "home", "Jane Doe"),
        compute_dedup_key(1, 43, "spread", "home", "Jane Doe"),
        compute_dedup_key(1, 42, "moneyline", "home", "Jane Doe"),
        compute_dedup_key(1, 42, "spread", "away", "Jane Doe"),
        compute_dedup_key(1, 42, "spread", "home", "John Roe"),
    ]
    assert base not in variants
    assert len(set(variants)) == len(variants)
