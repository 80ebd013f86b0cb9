from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    One fetched `(day, price)` pair for a series.

    Invariants:
    - `day` is a plain calendar date (UTC-normalized by the source adapter)
    - `price` is a finite, non-negative Decimal
    """

    day: date
    price: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.day, datetime) or not isinstance(self.day, date):
            raise ValueError("PriceQuote.day must be a date (not datetime)")

        price = self.price
        if isinstance(price, bool):
            raise ValueError("PriceQuote.price must be numeric, got bool")
        if not isinstance(price, Decimal):
            try:
                # str() keeps float quotes at their printed precision
                price = Decimal(str(price))
            except (InvalidOperation, TypeError, ValueError) as error:
                raise ValueError(f"PriceQuote.price is not numeric: {self.price!r}") from error
            object.__setattr__(self, "price", price)

        if not price.is_finite():
            raise ValueError("PriceQuote.price must be finite")
        if price < 0:
            raise ValueError("PriceQuote.price must be non-negative")


@dataclass(frozen=True, slots=True)
class FetchedBatch:
    """
    Strictly ascending sequence of quotes returned by one source call.

    May be empty. Consecutive days are not required here; contiguity is enforced at commit.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - src/pricehistory/contexts/price_history/application/ports/price_source.py
      - src/pricehistory/contexts/price_history/domain/services/batch_validator.py
    """

    quotes: tuple[PriceQuote, ...] = ()

    def __post_init__(self) -> None:
        quotes = tuple(self.quotes)
        for previous, current in zip(quotes, quotes[1:]):
            if current.day <= previous.day:
                raise ValueError(
                    "FetchedBatch quotes must be strictly ascending by day: "
                    f"{previous.day.isoformat()} then {current.day.isoformat()}"
                )
        object.__setattr__(self, "quotes", quotes)

    @classmethod
    def of(cls, quotes: Iterable[PriceQuote]) -> FetchedBatch:
        return cls(quotes=tuple(quotes))

    @property
    def is_empty(self) -> bool:
        return not self.quotes

    @property
    def first_day(self) -> date:
        if not self.quotes:
            raise ValueError("empty batch has no first day")
        return self.quotes[0].day

    def __len__(self) -> int:
        return len(self.quotes)

    def __iter__(self):
        return iter(self.quotes)
