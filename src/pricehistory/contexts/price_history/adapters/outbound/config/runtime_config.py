from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping

import yaml

from pricehistory.contexts.price_history.application.services import (
    DEFAULT_COMMIT_MAX_ATTEMPTS,
    DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS,
)
from pricehistory.shared_kernel.primitives import SeriesKey

_ENV_NAME_KEY = "PRICE_HISTORY_ENV"
_CONFIG_PATH_KEY = "PRICE_HISTORY_CONFIG"
_ALLOWED_ENVS = ("dev", "prod", "test")

_VS_CURRENCY_DEFAULT = "usd"
_API_KEY_HEADER_DEFAULT = "x-api-key"


@dataclass(frozen=True, slots=True)
class PriceHistoryIngestionRuntimeConfig:
    """
    Commit engine retry settings from optional `price_history.ingestion.*` section.

    Related:
      - configs/dev/price_history.yaml
      - src/pricehistory/contexts/price_history/application/services/commit_engine.py
    """

    commit_max_attempts: int = DEFAULT_COMMIT_MAX_ATTEMPTS
    commit_retry_backoff_seconds: float = DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS

    def __post_init__(self) -> None:
        if self.commit_max_attempts <= 0:
            raise ValueError("price_history.ingestion.commit_max_attempts must be > 0")
        if self.commit_retry_backoff_seconds < 0:
            raise ValueError("price_history.ingestion.commit_retry_backoff_seconds must be >= 0")


@dataclass(frozen=True, slots=True)
class PriceHistoryBackoffConfig:
    base_s: float
    max_s: float
    jitter_s: float

    def __post_init__(self) -> None:
        if self.base_s < 0:
            raise ValueError("price_history.source.backoff.base_s must be >= 0")
        if self.max_s < self.base_s:
            raise ValueError("price_history.source.backoff.max_s must be >= base_s")
        if self.jitter_s < 0:
            raise ValueError("price_history.source.backoff.jitter_s must be >= 0")


@dataclass(frozen=True, slots=True)
class PriceHistorySourceConfig:
    """
    Upstream daily price endpoint settings from strict `price_history.source.*` section.

    Related:
      - configs/dev/price_history.yaml
      - src/pricehistory/contexts/price_history/adapters/outbound/clients/rest_price_source.py
    """

    base_url: str
    path: str
    timeout_s: float
    retries: int
    backoff: PriceHistoryBackoffConfig
    vs_currency: str = _VS_CURRENCY_DEFAULT
    api_key_header: str = _API_KEY_HEADER_DEFAULT

    def __post_init__(self) -> None:
        if not self.base_url.strip():
            raise ValueError("price_history.source.base_url must be non-empty")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("price_history.source.base_url must start with http:// or https://")
        if not self.path.startswith("/"):
            raise ValueError("price_history.source.path must start with '/'")
        if self.timeout_s <= 0:
            raise ValueError("price_history.source.timeout_s must be > 0")
        if self.retries < 0:
            raise ValueError("price_history.source.retries must be >= 0")
        if not self.vs_currency.strip():
            raise ValueError("price_history.source.vs_currency must be non-empty")
        if not self.api_key_header.strip():
            raise ValueError("price_history.source.api_key_header must be non-empty")


@dataclass(frozen=True, slots=True)
class PriceHistoryQueueRuntimeConfig:
    """
    Worker queue settings from strict `price_history.queue.*` section.

    Related:
      - configs/dev/price_history.yaml
      - apps/worker/price_history_ingestion/main/main.py
    """

    enabled: bool
    claim_poll_seconds: float
    lease_seconds: int
    max_attempts: int
    retry_delay_seconds: float

    def __post_init__(self) -> None:
        if self.claim_poll_seconds <= 0:
            raise ValueError("price_history.queue.claim_poll_seconds must be > 0")
        if self.lease_seconds <= 0:
            raise ValueError("price_history.queue.lease_seconds must be > 0")
        if self.max_attempts <= 0:
            raise ValueError("price_history.queue.max_attempts must be > 0")
        if self.retry_delay_seconds < 0:
            raise ValueError("price_history.queue.retry_delay_seconds must be >= 0")


@dataclass(frozen=True, slots=True)
class PriceHistoryFanOutRuntimeConfig:
    """
    Fan-out producer settings from strict `price_history.fanout.*` section.

    Related:
      - configs/dev/price_history.yaml
      - apps/scheduler/price_history_fanout/main/main.py
    """

    enabled: bool
    interval_seconds: float
    initial_start_day: date
    tracked_keys: tuple[SeriesKey, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("price_history.fanout.interval_seconds must be > 0")
        if len(set(self.tracked_keys)) != len(self.tracked_keys):
            raise ValueError("price_history.fanout.tracked_keys must not contain duplicates")


@dataclass(frozen=True, slots=True)
class PriceHistoryRuntimeConfig:
    """
    Price history runtime config v1 loaded from `configs/<env>/price_history.yaml`.

    Docs:
      - docs/architecture/price-history/price-history-ingestion-v1.md
    Related:
      - configs/dev/price_history.yaml
      - configs/test/price_history.yaml
      - configs/prod/price_history.yaml
    """

    version: int
    source: PriceHistorySourceConfig
    queue: PriceHistoryQueueRuntimeConfig
    fanout: PriceHistoryFanOutRuntimeConfig
    ingestion: PriceHistoryIngestionRuntimeConfig = field(
        default_factory=PriceHistoryIngestionRuntimeConfig
    )

    def __post_init__(self) -> None:
        if self.version != 1:
            raise ValueError(f"price_history config version must be 1, got {self.version!r}")


def resolve_price_history_config_path(*, environ: Mapping[str, str]) -> Path:
    """
    Resolve runtime config path using env override precedence contract.

    Args:
        environ: Runtime environment mapping.
    Returns:
        Path: Resolved `price_history.yaml` path.
    Assumptions:
        Precedence is `PRICE_HISTORY_CONFIG` > `configs/<PRICE_HISTORY_ENV>/price_history.yaml`.
    Raises:
        ValueError: If `PRICE_HISTORY_ENV` value is unsupported.
    Side Effects:
        None.
    """
    override_path = environ.get(_CONFIG_PATH_KEY, "").strip()
    if override_path:
        return Path(override_path)

    raw_env_name = environ.get(_ENV_NAME_KEY, "dev").strip().lower()
    if raw_env_name not in _ALLOWED_ENVS:
        raise ValueError(f"{_ENV_NAME_KEY} must be one of {_ALLOWED_ENVS}, got {raw_env_name!r}")
    return Path("configs") / raw_env_name / "price_history.yaml"


def load_price_history_runtime_config(path: str | Path) -> PriceHistoryRuntimeConfig:
    """
    Load and validate price history runtime YAML configuration.

    Args:
        path: Path to `price_history.yaml`.
    Returns:
        PriceHistoryRuntimeConfig: Parsed validated config object.
    Assumptions:
        `source`, `queue` and `fanout` sections are strict-required; `ingestion` falls back
        to commit engine defaults.
    Raises:
        FileNotFoundError: If path does not exist.
        ValueError: If YAML shape or values are invalid.
    Side Effects:
        Reads one UTF-8 YAML file from filesystem.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"price_history config not found: {config_path}")

    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise ValueError("price_history config must be mapping at top-level")

    version = _get_int(payload, "version", prefix="", required=True)
    root = _get_mapping(payload, "price_history", prefix="", required=True)
    ingestion_map = _get_mapping(root, "ingestion", prefix="price_history.", required=False)
    source_map = _get_mapping(root, "source", prefix="price_history.", required=True)
    backoff_map = _get_mapping(source_map, "backoff", prefix="price_history.source.", required=True)
    queue_map = _get_mapping(root, "queue", prefix="price_history.", required=True)
    fanout_map = _get_mapping(root, "fanout", prefix="price_history.", required=True)

    ingestion = PriceHistoryIngestionRuntimeConfig(
        commit_max_attempts=(
            _get_int(ingestion_map, "commit_max_attempts", prefix="price_history.ingestion.")
            if "commit_max_attempts" in ingestion_map
            else DEFAULT_COMMIT_MAX_ATTEMPTS
        ),
        commit_retry_backoff_seconds=(
            _get_float(
                ingestion_map,
                "commit_retry_backoff_seconds",
                prefix="price_history.ingestion.",
            )
            if "commit_retry_backoff_seconds" in ingestion_map
            else DEFAULT_COMMIT_RETRY_BACKOFF_SECONDS
        ),
    )

    source_prefix = "price_history.source."
    source = PriceHistorySourceConfig(
        base_url=_get_str(source_map, "base_url", prefix=source_prefix),
        path=_get_str(source_map, "path", prefix=source_prefix),
        timeout_s=_get_float(source_map, "timeout_s", prefix=source_prefix),
        retries=_get_int(source_map, "retries", prefix=source_prefix),
        backoff=PriceHistoryBackoffConfig(
            base_s=_get_float(backoff_map, "base_s", prefix=f"{source_prefix}backoff."),
            max_s=_get_float(backoff_map, "max_s", prefix=f"{source_prefix}backoff."),
            jitter_s=_get_float(backoff_map, "jitter_s", prefix=f"{source_prefix}backoff."),
        ),
        vs_currency=(
            _get_str(source_map, "vs_currency", prefix=source_prefix)
            if "vs_currency" in source_map
            else _VS_CURRENCY_DEFAULT
        ),
        api_key_header=(
            _get_str(source_map, "api_key_header", prefix=source_prefix)
            if "api_key_header" in source_map
            else _API_KEY_HEADER_DEFAULT
        ),
    )

    queue_prefix = "price_history.queue."
    queue = PriceHistoryQueueRuntimeConfig(
        enabled=_get_bool(queue_map, "enabled", prefix=queue_prefix),
        claim_poll_seconds=_get_float(queue_map, "claim_poll_seconds", prefix=queue_prefix),
        lease_seconds=_get_int(queue_map, "lease_seconds", prefix=queue_prefix),
        max_attempts=_get_int(queue_map, "max_attempts", prefix=queue_prefix),
        retry_delay_seconds=_get_float(queue_map, "retry_delay_seconds", prefix=queue_prefix),
    )

    fanout_prefix = "price_history.fanout."
    fanout = PriceHistoryFanOutRuntimeConfig(
        enabled=_get_bool(fanout_map, "enabled", prefix=fanout_prefix),
        interval_seconds=_get_float(fanout_map, "interval_seconds", prefix=fanout_prefix),
        initial_start_day=_get_date(fanout_map, "initial_start_day", prefix=fanout_prefix),
        tracked_keys=_get_series_keys(fanout_map, "tracked_keys", prefix=fanout_prefix),
    )

    return PriceHistoryRuntimeConfig(
        version=version,
        source=source,
        queue=queue,
        fanout=fanout,
        ingestion=ingestion,
    )


def _get_mapping(
    data: Mapping[str, Any],
    key: str,
    *,
    prefix: str,
    required: bool,
) -> Mapping[str, Any]:
    """
    Read nested mapping from YAML payload.

    Args:
        data: Source mapping.
        key: Mapping key.
        prefix: Dotted path of `data` for error messages.
        required: Whether key is mandatory.
    Returns:
        Mapping[str, Any]: Nested mapping or empty mapping.
    Assumptions:
        Optional missing mapping sections are represented as empty mapping.
    Raises:
        ValueError: If required key missing or value is not mapping.
    Side Effects:
        None.
    """
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {prefix}{key}")
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"expected mapping at key '{prefix}{key}', got {type(value).__name__}")
    return value


def _require(data: Mapping[str, Any], key: str, *, prefix: str) -> Any:
    value = data.get(key)
    if value is None:
        raise ValueError(f"missing required key: {prefix}{key}")
    return value


def _get_bool(data: Mapping[str, Any], key: str, *, prefix: str) -> bool:
    value = _require(data, key, prefix=prefix)
    if not isinstance(value, bool):
        raise ValueError(f"expected bool at key '{prefix}{key}', got {type(value).__name__}")
    return value


def _get_int(data: Mapping[str, Any], key: str, *, prefix: str, required: bool = True) -> int:
    """
    Read integer value from payload while rejecting bools.

    Bool values are rejected despite inheriting from `int`.
    """
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"missing required key: {prefix}{key}")
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected int at key '{prefix}{key}', got {type(value).__name__}")
    return value


def _get_float(data: Mapping[str, Any], key: str, *, prefix: str) -> float:
    value = _require(data, key, prefix=prefix)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected number at key '{prefix}{key}', got {type(value).__name__}")
    return float(value)


def _get_str(data: Mapping[str, Any], key: str, *, prefix: str) -> str:
    value = _require(data, key, prefix=prefix)
    if not isinstance(value, str):
        raise ValueError(f"expected str at key '{prefix}{key}', got {type(value).__name__}")
    return value.strip()


def _get_date(data: Mapping[str, Any], key: str, *, prefix: str) -> date:
    """
    Read calendar date; accepts YAML date scalars and ISO `YYYY-MM-DD` strings.
    """
    value = _require(data, key, prefix=prefix)
    if isinstance(value, datetime):
        raise ValueError(f"expected date at key '{prefix}{key}', got datetime")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as error:
            raise ValueError(f"expected ISO date at key '{prefix}{key}', got {value!r}") from error
    raise ValueError(f"expected date at key '{prefix}{key}', got {type(value).__name__}")


def _get_series_keys(data: Mapping[str, Any], key: str, *, prefix: str) -> tuple[SeriesKey, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ValueError(f"expected list at key '{prefix}{key}', got {type(value).__name__}")
    keys: list[SeriesKey] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise ValueError(f"expected str at key '{prefix}{key}[{index}]'")
        try:
            keys.append(SeriesKey(item))
        except ValueError as error:
            raise ValueError(f"invalid series key at '{prefix}{key}[{index}]': {error}") from error
    return tuple(keys)
