from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from eventfeed.streams.retry import ExponentialBackoff, NoRetry, RetryPolicy

_CONFIG_PATH = Path(__file__).parent / "config.yaml"

_BACKOFF_KEYS = (
    "initial_interval",
    "multiplier",
    "max_interval",
    "randomization_factor",
    "max_elapsed",
)


@dataclass(frozen=True)
class ClientSettings:
    url: str
    stream: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    encoding_base64: bool = False
    retry: bool = True
    backoff: dict[str, float | None] = field(default_factory=dict)

    def retry_policy(self) -> RetryPolicy:
        if not self.retry:
            return NoRetry()
        return ExponentialBackoff(**self.backoff)


def load_raw_config(config_path: Path = _CONFIG_PATH) -> dict:
    with config_path.open() as config_file:
        return yaml.safe_load(config_file) or {}


def _backoff_settings(raw_backoff: Mapping | None) -> dict[str, float | None]:
    raw_backoff = raw_backoff or {}
    unknown = set(raw_backoff) - set(_BACKOFF_KEYS)
    if unknown:
        raise ValueError(f"unknown backoff settings: {', '.join(sorted(unknown))}")
    return {
        key: None if raw_backoff[key] is None else float(raw_backoff[key])
        for key in _BACKOFF_KEYS
        if key in raw_backoff
    }


def build_settings(raw_config: Mapping) -> ClientSettings:
    if not raw_config.get("url"):
        raise ValueError("config is missing the stream url")
    return ClientSettings(
        url=str(raw_config["url"]),
        stream=str(raw_config.get("stream") or ""),
        headers={
            str(key): str(value)
            for key, value in (raw_config.get("headers") or {}).items()
        },
        encoding_base64=bool(raw_config.get("encoding_base64", False)),
        retry=bool(raw_config.get("retry", True)),
        backoff=_backoff_settings(raw_config.get("backoff")),
    )


def load_settings(config_path: Path = _CONFIG_PATH) -> ClientSettings:
    return build_settings(load_raw_config(config_path))
