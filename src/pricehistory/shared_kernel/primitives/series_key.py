from __future__ import annotations

from dataclasses import dataclass

SERIES_KEY_MAX_LENGTH = 42


@dataclass(frozen=True, slots=True)
class SeriesKey:
    """
    Identifier of one independent daily price series (e.g. a token address).

    Rules:
    - normalization: strip + lower (token addresses are case-insensitive)
    - invariant: non-empty after normalization
    - invariant: at most 42 characters, the width of the `series_key` storage column

    Lowercasing fits hex EVM addresses only. Case-sensitive identifiers (base58 keys and
    the like) would collide after normalization and are not supported.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise ValueError("SeriesKey value must be a string")

        normalized = self.value.strip().lower()
        object.__setattr__(self, "value", normalized)

        if not normalized:
            raise ValueError("SeriesKey must be non-empty after normalization")
        if len(normalized) > SERIES_KEY_MAX_LENGTH:
            raise ValueError(
                f"SeriesKey must be at most {SERIES_KEY_MAX_LENGTH} characters, "
                f"got {len(normalized)}"
            )

    def __str__(self) -> str:
        return self.value
