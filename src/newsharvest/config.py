from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from typing import Any

import yaml


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class PathsConfig:
    state_db: str


@dataclass(frozen=True)
class HttpConfig:
    timeout_seconds: float
    max_retries: int
    backoff_seconds: float
    max_concurrency: int
    retry_statuses: list[int]
    headers: dict[str, str]


@dataclass(frozen=True)
class CrawlConfig:
    batch_size: int
    max_consecutive_failures: int
    delay_min_seconds: float
    delay_max_seconds: float


@dataclass(frozen=True)
class Config:
    paths: PathsConfig
    http: HttpConfig
    crawl: CrawlConfig


BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9,et;q=0.8,ru;q=0.7",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "state_db": "data/newsharvest.sqlite3",
    },
    "http": {
        "timeout_seconds": 30.0,
        "max_retries": 2,
        "backoff_seconds": 1.0,
        "max_concurrency": 5,
        "retry_statuses": [500, 502, 503, 504],
        "headers": dict(BROWSER_HEADERS),
    },
    "crawl": {
        "batch_size": 20,
        "max_consecutive_failures": 20,
        "delay_min_seconds": 2.0,
        "delay_max_seconds": 4.0,
    },
}

# Free-form mappings: keys are not checked against the defaults.
_OPEN_MAPPINGS = {"config.http.headers"}


def default_config_path() -> str | None:
    path = os.environ.get("NH_CONFIG_PATH", "").strip()
    return path or None


def load_config(path: str | None = None) -> Config:
    path = path or default_config_path()
    raw: dict[str, Any] = {}
    if path:
        raw = _read_yaml(path)
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping")
    merged = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), raw)
    _apply_env_overrides(merged)
    errors = validate_config(merged)
    if errors:
        raise ConfigError("Invalid config: " + "; ".join(errors))
    return _build_config(merged)


def load_media_file(path: str) -> list[dict[str, Any]]:
    data = _read_yaml(path)
    if isinstance(data, dict):
        data = data.get("media")
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigError(f"{path} must contain a list of media")
    media: list[dict[str, Any]] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ConfigError(f"media[{index}] must be a mapping")
        for key in ("id", "slug", "title", "base_url"):
            if item.get(key) in (None, ""):
                raise ConfigError(f"media[{index}] missing {key}")
        if not isinstance(item["id"], int) or isinstance(item["id"], bool):
            raise ConfigError(f"media[{index}].id must be an integer")
        media.append(item)
    return media


def validate_config(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _validate_dict(cfg, DEFAULT_CONFIG, "config", errors)
    if errors:
        return errors
    http_cfg = cfg["http"]
    crawl_cfg = cfg["crawl"]
    if http_cfg["max_concurrency"] < 1:
        errors.append("config.http.max_concurrency must be >= 1")
    if http_cfg["max_retries"] < 0:
        errors.append("config.http.max_retries must be >= 0")
    if crawl_cfg["batch_size"] < 1:
        errors.append("config.crawl.batch_size must be >= 1")
    if crawl_cfg["max_consecutive_failures"] < 1:
        errors.append("config.crawl.max_consecutive_failures must be >= 1")
    if crawl_cfg["delay_min_seconds"] < 0:
        errors.append("config.crawl.delay_min_seconds must be >= 0")
    if crawl_cfg["delay_max_seconds"] < crawl_cfg["delay_min_seconds"]:
        errors.append("config.crawl.delay_max_seconds must be >= delay_min_seconds")
    return errors


def _read_yaml(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    db_path = os.environ.get("NH_DB_PATH", "").strip()
    if db_path and isinstance(cfg.get("paths"), dict):
        cfg["paths"]["state_db"] = db_path


def _validate_dict(value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    if path in _OPEN_MAPPINGS:
        for key, item in value.items():
            if not isinstance(item, str):
                errors.append(f"{path}.{key} must be a string")
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key in value.keys():
        if key not in schema:
            errors.append(f"unknown {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        if not isinstance(value, dict):
            errors.append(f"{path} must be an object")
            return
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, list):
        if not isinstance(value, list):
            errors.append(f"{path} must be a list")
            return
        if default:
            sample = default[0]
            for item in value:
                if not isinstance(item, type(sample)) or isinstance(item, bool):
                    errors.append(f"{path} must be a list of {type(sample).__name__}")
                    break
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        return
    if isinstance(default, float):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{path} must be a number")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        return


def _build_config(cfg: dict[str, Any]) -> Config:
    paths_cfg = cfg["paths"]
    http_cfg = cfg["http"]
    crawl_cfg = cfg["crawl"]

    paths = PathsConfig(state_db=str(paths_cfg["state_db"]))

    http = HttpConfig(
        timeout_seconds=float(http_cfg["timeout_seconds"]),
        max_retries=int(http_cfg["max_retries"]),
        backoff_seconds=float(http_cfg["backoff_seconds"]),
        max_concurrency=int(http_cfg["max_concurrency"]),
        retry_statuses=[int(status) for status in http_cfg["retry_statuses"]],
        headers={str(k): str(v) for k, v in http_cfg["headers"].items()},
    )

    crawl = CrawlConfig(
        batch_size=int(crawl_cfg["batch_size"]),
        max_consecutive_failures=int(crawl_cfg["max_consecutive_failures"]),
        delay_min_seconds=float(crawl_cfg["delay_min_seconds"]),
        delay_max_seconds=float(crawl_cfg["delay_max_seconds"]),
    )

    return Config(paths=paths, http=http, crawl=crawl)
