from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommitResult:
    """
    Result of one committed series write.

    Fields:
    - inserted: rows actually written (skip-existing rows are not counted)
    - deleted: rows removed by a refresh purge
    - attempts: transaction attempts used, including the successful one
    """

    inserted: int
    deleted: int
    attempts: int

    def __post_init__(self) -> None:
        if self.inserted < 0:
            raise ValueError("CommitResult.inserted must be >= 0")
        if self.deleted < 0:
            raise ValueError("CommitResult.deleted must be >= 0")
        if self.attempts <= 0:
            raise ValueError("CommitResult.attempts must be > 0")
