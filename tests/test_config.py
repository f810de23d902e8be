"""Tests for skelseq.config."""
import json

import pytest

from skelseq import config as config_mod
from skelseq.config import AppConfig, load_config


@pytest.fixture(autouse=True)
def _clean_config_state():
	config_mod._CONFIG_PATH = None
	config_mod.reset_config_cache()
	yield
	config_mod._CONFIG_PATH = None
	config_mod.reset_config_cache()


def _write(tmp_path, obj):
	p = tmp_path / "config.json"
	p.write_text(obj if isinstance(obj, str) else json.dumps(obj), encoding="utf-8")
	return p


def test_missing_file_gives_defaults(tmp_path):
	cfg = load_config(tmp_path / "absent.json")
	assert cfg == AppConfig()
	assert cfg.storage.data_path == "./data"
	assert cfg.normalization.confidence_threshold == 0.3
	assert cfg.validation.max_poses == 1000
	assert cfg.bridge.port == 18090


def test_values_are_read(tmp_path):
	p = _write(
		tmp_path,
		{
			"storage": {"data_path": "/srv/poses", "backend": "Bridge"},
			"normalization": {"confidence_threshold": 0.5, "frame_interval_ms": 40},
			"validation": {"max_poses": 10, "max_tag_length": 20, "max_frame_mb": 2},
			"bridge": {"host": "10.0.0.2", "port": "9000", "timeout_seconds": 3},
		},
	)
	cfg = load_config(p)
	assert cfg.storage.data_path == "/srv/poses"
	assert cfg.storage.backend == "bridge"
	assert cfg.normalization.confidence_threshold == 0.5
	assert cfg.normalization.frame_interval_ms == 40
	assert cfg.validation.max_poses == 10
	assert cfg.validation.max_tag_length == 20
	assert cfg.validation.max_frame_mb == 2.0
	assert cfg.bridge.host == "10.0.0.2"
	assert cfg.bridge.port == 9000
	assert cfg.bridge.timeout_seconds == 3.0


def test_malformed_json_falls_back(tmp_path):
	assert load_config(_write(tmp_path, "{oops")) == AppConfig()
	assert load_config(_write(tmp_path, "[1, 2]")) == AppConfig()


def test_out_of_range_values_fall_back(tmp_path):
	p = _write(
		tmp_path,
		{
			"normalization": {"confidence_threshold": 7, "frame_interval_ms": 0},
			"validation": {"max_poses": -1, "max_frame_mb": "lots"},
			"bridge": {"timeout_seconds": 0},
		},
	)
	cfg = load_config(p)
	assert cfg.normalization.confidence_threshold == 0.3
	assert cfg.normalization.frame_interval_ms == 33
	assert cfg.validation.max_poses == 1000
	assert cfg.validation.max_frame_mb == 10.0
	assert cfg.bridge.timeout_seconds == 0.1


def test_get_config_is_cached_until_path_changes(tmp_path):
	first = _write(tmp_path, {"storage": {"data_path": "/a"}})
	config_mod.set_config_path(first)
	cfg = config_mod.get_config()
	assert cfg.storage.data_path == "/a"
	assert config_mod.get_config() is cfg

	other = tmp_path / "other.json"
	other.write_text(json.dumps({"storage": {"data_path": "/b"}}), encoding="utf-8")
	config_mod.set_config_path(other)
	assert config_mod.get_config().storage.data_path == "/b"


def test_config_is_frozen():
	cfg = AppConfig()
	with pytest.raises(Exception):
		cfg.storage.data_path = "/elsewhere"


def test_cors_origins(tmp_path):
	assert load_config(tmp_path / "absent.json").bridge.cors_origins == ()
	p = _write(tmp_path, {"bridge": {"cors_origins": ["http://localhost:5173", " ", "http://127.0.0.1:3000"]}})
	assert load_config(p).bridge.cors_origins == ("http://localhost:5173", "http://127.0.0.1:3000")
	assert load_config(_write(tmp_path, {"bridge": {"cors_origins": "*"}})).bridge.cors_origins == ()
