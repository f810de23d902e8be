from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class StorageConfig:
	# Root folder; sessions live under <data_path>/sessions/<session>/.
	data_path: str = "./data"
	# local / bridge
	backend: str = "local"


@dataclass(frozen=True)
class NormalizationConfig:
	confidence_threshold: float = 0.3
	# Used for poses without a timestamp (~30 fps).
	frame_interval_ms: int = 33


@dataclass(frozen=True)
class ValidationConfig:
	max_poses: int = 1000
	max_tag_length: int = 100
	max_frame_mb: float = 10.0


@dataclass(frozen=True)
class BridgeConfig:
	# Address of the process that owns the filesystem (server.py).
	host: str = "127.0.0.1"
	port: int = 18090
	timeout_seconds: float = 10.0
	# Browser origins allowed to call the server. Empty: no CORS headers (same-origin only).
	cors_origins: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AppConfig:
	storage: StorageConfig = field(default_factory=StorageConfig)
	normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
	validation: ValidationConfig = field(default_factory=ValidationConfig)
	bridge: BridgeConfig = field(default_factory=BridgeConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None


def _repo_root() -> Path:
	# skelseq/config.py -> repo root is one level up.
	return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
	return _repo_root() / "config.json"


def set_config_path(path: str | Path) -> None:
	"""
	Override the config path (must be called before first get_config()).
	Intended for tooling/subprocess use; server normally uses the default path.
	"""
	global _CONFIG_PATH
	global _CONFIG_CACHE
	_CONFIG_PATH = Path(path).expanduser().resolve()
	_CONFIG_CACHE = None


def reset_config_cache() -> None:
	global _CONFIG_CACHE
	_CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
	cur: Any = d
	for k in keys:
		if not isinstance(cur, dict):
			return default
		cur = cur.get(k)
	return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
	try:
		return int(v)
	except (TypeError, ValueError):
		return int(default)


def _as_str(v: Any, default: str = "") -> str:
	return str(v) if v is not None else str(default)


def _as_float(v: Any, default: float) -> float:
	try:
		return float(v)
	except (TypeError, ValueError):
		return float(default)


def load_config(path: Optional[str | Path] = None) -> AppConfig:
	p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
	if not p.exists():
		# Defaults-only config; app can still run.
		return AppConfig()
	try:
		raw = json.loads(p.read_text(encoding="utf-8"))
	except (OSError, ValueError):
		# If config is malformed, fail safe to defaults (but keep app running).
		return AppConfig()

	if not isinstance(raw, dict):
		return AppConfig()

	data_path = _as_str(_deep_get(raw, ["storage", "data_path"], "./data"), "./data").strip() or "./data"
	backend = _as_str(_deep_get(raw, ["storage", "backend"], "local"), "local").strip().lower() or "local"

	threshold = _as_float(_deep_get(raw, ["normalization", "confidence_threshold"], 0.3), 0.3)
	if not (0.0 <= threshold <= 1.0):
		threshold = 0.3
	frame_interval = _as_int(_deep_get(raw, ["normalization", "frame_interval_ms"], 33), 33)

	max_poses = _as_int(_deep_get(raw, ["validation", "max_poses"], 1000), 1000)
	max_tag_length = _as_int(_deep_get(raw, ["validation", "max_tag_length"], 100), 100)
	max_frame_mb = _as_float(_deep_get(raw, ["validation", "max_frame_mb"], 10.0), 10.0)

	bridge_host = _as_str(_deep_get(raw, ["bridge", "host"], "127.0.0.1"), "127.0.0.1")
	bridge_port = _as_int(_deep_get(raw, ["bridge", "port"], 18090), 18090)
	bridge_timeout = _as_float(_deep_get(raw, ["bridge", "timeout_seconds"], 10.0), 10.0)
	cors_raw = _deep_get(raw, ["bridge", "cors_origins"], [])
	cors_origins = tuple(str(o).strip() for o in cors_raw if str(o).strip()) if isinstance(cors_raw, list) else ()

	return AppConfig(
		storage=StorageConfig(data_path=data_path, backend=backend),
		normalization=NormalizationConfig(
			confidence_threshold=float(threshold),
			frame_interval_ms=int(frame_interval) if int(frame_interval) > 0 else 33,
		),
		validation=ValidationConfig(
			max_poses=int(max_poses) if int(max_poses) > 0 else 1000,
			max_tag_length=int(max_tag_length) if int(max_tag_length) > 0 else 100,
			max_frame_mb=float(max_frame_mb) if float(max_frame_mb) > 0.0 else 10.0,
		),
		bridge=BridgeConfig(
			host=bridge_host,
			port=int(bridge_port) if int(bridge_port) > 0 else 18090,
			timeout_seconds=max(0.1, float(bridge_timeout)),
			cors_origins=cors_origins,
		),
	)


def get_config() -> AppConfig:
	global _CONFIG_CACHE
	if _CONFIG_CACHE is None:
		_CONFIG_CACHE = load_config()
	return _CONFIG_CACHE
