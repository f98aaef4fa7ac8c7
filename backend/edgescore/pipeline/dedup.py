import hashlib
from enum import Enum

DEDUP_KEY_LENGTH = 32


def _field(value: object) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def compute_dedup_key(
    source_id: int | str,
    match_id: int | str,
    pick_type: object,
    side: object,
    picker_name: str,
) -> str:
    """Fingerprint identifying "the same pick" across repeated scrapes.

    Only the picker name is case-folded and trimmed; every other field is
    compared verbatim.
    """
    payload = "|".join(
        [
            _field(source_id),
            _field(match_id),
            _field(pick_type),
            _field(side),
            picker_name.lower().strip(),
        ]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:DEDUP_KEY_LENGTH]
