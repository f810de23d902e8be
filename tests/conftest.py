"""Shared fixtures for the skelseq test suite."""
import base64
import sys
from pathlib import Path

import pytest

# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from skelseq.config import AppConfig, StorageConfig  # noqa: E402
from skelseq.session_store import SessionStore  # noqa: E402
from skelseq.storage_backends.local_backend import LocalStorageBackend  # noqa: E402
from skelseq.tagger import SequenceTagger  # noqa: E402

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
	"iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


def make_keypoint(part, x, y, score=0.9):
	return {"part": part, "position": {"x": x, "y": y}, "score": score}


def make_pose(keypoints=None, score=0.8, timestamp=None):
	pose = {"keypoints": keypoints if keypoints is not None else [make_keypoint("nose", 320, 240)], "score": score}
	if timestamp is not None:
		pose["timestamp"] = timestamp
	return pose


@pytest.fixture
def data_path(tmp_path):
	return str(tmp_path / "data")


@pytest.fixture
def cfg(data_path):
	return AppConfig(storage=StorageConfig(data_path=data_path, backend="local"))


@pytest.fixture
def store():
	return SessionStore()


@pytest.fixture
def backend(data_path, store):
	return LocalStorageBackend(data_path=data_path, store=store)


@pytest.fixture
def tagger(backend, cfg):
	return SequenceTagger(backend, cfg=cfg)


@pytest.fixture
def full_pose():
	"""A pose with all 17 canonical parts at distinct positions, all confident."""
	from skelseq.pose.types import KEYPOINT_NAMES

	kps = [make_keypoint(name, 100 + i * 10, 50 + i * 20, 0.95) for i, name in enumerate(KEYPOINT_NAMES)]
	return make_pose(kps, score=0.9)
