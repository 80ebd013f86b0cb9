from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pricehistory.contexts.price_history.adapters.outbound.clients.common_http import (
    HttpClient,
    HttpRequestError,
)
from pricehistory.contexts.price_history.adapters.outbound.config.runtime_config import (
    PriceHistorySourceConfig,
)
from pricehistory.contexts.price_history.application.ports import PriceSource
from pricehistory.contexts.price_history.domain.errors import PriceSourceError
from pricehistory.contexts.price_history.domain.value_objects import FetchedBatch, PriceQuote
from pricehistory.shared_kernel.primitives import SeriesKey, to_series_day


@dataclass(frozen=True, slots=True)
class RestPriceSource(PriceSource):
    """
    REST PriceSource for a daily token price endpoint.

    Request:  GET {base_url}{path}?token=<key>&vs_currency=<ccy>&from=<epoch s>&interval=daily
    Response: {"prices": [[epoch_ms, price], ...]}

    Important:
    - every point is normalized to its UTC calendar day
    - several points on one day collapse to the last one returned
    - points before `start_day` are dropped, output is strictly ascending
    - the first returned day may be later than `start_day`
    """

    cfg: PriceHistorySourceConfig
    http: HttpClient
    api_key: str | None = None

    def fetch_daily(self, *, key: SeriesKey, start_day: date) -> FetchedBatch:
        start_epoch_s = int(datetime.combine(start_day, time.min, tzinfo=timezone.utc).timestamp())
        headers: dict[str, str] = {}
        if self.api_key:
            headers[self.cfg.api_key_header] = self.api_key

        try:
            resp = self.http.get_json(
                url=self.cfg.base_url.rstrip("/") + self.cfg.path,
                params={
                    "token": key.value,
                    "vs_currency": self.cfg.vs_currency,
                    "from": start_epoch_s,
                    "interval": "daily",
                },
                headers=headers,
                timeout_s=self.cfg.timeout_s,
                retries=self.cfg.retries,
                backoff_base_s=self.cfg.backoff.base_s,
                backoff_max_s=self.cfg.backoff.max_s,
                backoff_jitter_s=self.cfg.backoff.jitter_s,
            )
        except HttpRequestError as error:
            raise PriceSourceError(
                f"price source request failed: {error}",
                key=key,
                start_day=start_day,
            ) from error

        try:
            by_day = _parse_prices(body=resp.body)
            return FetchedBatch.of(
                PriceQuote(day=day, price=by_day[day])
                for day in sorted(by_day)
                if day >= start_day
            )
        except ValueError as error:
            raise PriceSourceError(
                f"unexpected price source payload: {error}",
                key=key,
                start_day=start_day,
            ) from error


def _parse_prices(*, body: Any) -> dict[date, Decimal]:
    if not isinstance(body, dict):
        raise ValueError(f"payload must be an object, got {type(body).__name__}")
    items = body.get("prices")
    if not isinstance(items, list):
        raise ValueError("payload.prices must be a list")

    by_day: dict[date, Decimal] = {}
    for item in items:
        if not isinstance(item, (list, tuple)) or len(item) < 2:
            raise ValueError(f"invalid price item: {item!r}")
        raw_ts, raw_price = item[0], item[1]
        if isinstance(raw_ts, bool) or not isinstance(raw_ts, (int, float)):
            raise ValueError(f"invalid price timestamp: {raw_ts!r}")
        if raw_price is None:
            # day without a quote
            continue
        try:
            price = Decimal(str(raw_price))
        except InvalidOperation as error:
            raise ValueError(f"invalid price value: {raw_price!r}") from error
        by_day[to_series_day(raw_ts / 1000)] = price
    return by_day
