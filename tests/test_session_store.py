"""Tests for skelseq.session_store."""
import asyncio
import json
from pathlib import Path

from skelseq.normalizer import normalize_poses
from skelseq.results import ErrorCode
from skelseq.session_store import (
	SessionStore,
	apply_entry_to_metadata,
	create_session_metadata,
	ensure_directory_structure,
)
from skelseq.tagger import build_sequence_entry
from tests.conftest import PNG_BYTES, PNG_DATA_URL, make_pose


def _entry(session, tag, n):
	poses = normalize_poses([make_pose(timestamp=i * 33) for i in range(n)])
	return build_sequence_entry(session, f"seq_{tag}_{n}", poses, tag)


def _session_paths(data_path, session="s1"):
	sdir = Path(data_path) / "sessions" / session
	return sdir, sdir / "sequences.jsonl"


async def test_append_creates_layout_and_metadata(store, data_path):
	sdir, log = _session_paths(data_path)
	res = await store.append(log, _entry("s1", "wave", 3))
	assert res.success
	assert (sdir / "frames").is_dir()
	meta = json.loads((sdir / "metadata.json").read_text(encoding="utf-8"))
	assert meta["session_id"] == "s1"
	assert meta["sequence_count"] == 1
	assert meta["tags"] == ["wave"]
	assert meta["statistics"] == {"total_frames": 3, "avg_sequence_length": 3.0, "pose_distribution": {"wave": 1}}
	assert meta["created_at"] <= meta["updated_at"]


async def test_aggregate_correctness(store, data_path):
	_, log = _session_paths(data_path)
	plan = [("wave", 3), ("jump", 5), ("wave", 1), ("sit", 10), ("jump", 2)]
	for tag, n in plan:
		res = await store.append(log, _entry("s1", tag, n))
		assert res.success

	loaded = await store.load_metadata(log.parent)
	meta = loaded.data
	assert meta["sequence_count"] == 5
	assert meta["statistics"]["total_frames"] == 21
	assert meta["statistics"]["avg_sequence_length"] == 4.2
	assert meta["statistics"]["pose_distribution"] == {"wave": 2, "jump": 2, "sit": 1}
	assert meta["tags"] == ["wave", "jump", "sit"]


async def test_log_preserves_append_order(store, data_path):
	_, log = _session_paths(data_path)
	entries = [_entry("s1", "t", n) for n in (1, 2, 3)]
	for e in entries:
		await store.append(log, e)
	res = await store.load_sequences(log.parent)
	assert res.success
	assert [row["id"] for row in res.data] == [e.id for e in entries]
	assert res.data[0] == entries[0].to_dict()


async def test_concurrent_appends_do_not_lose_updates(store, data_path):
	_, log = _session_paths(data_path)
	await asyncio.gather(*(store.append(log, _entry("s1", f"t{i % 3}", 2)) for i in range(20)))
	meta = (await store.load_metadata(log.parent)).data
	assert meta["sequence_count"] == 20
	assert meta["statistics"]["total_frames"] == 40
	assert sum(meta["statistics"]["pose_distribution"].values()) == 20
	assert len(log.read_text(encoding="utf-8").splitlines()) == 20


async def test_missing_metadata_is_not_an_error(store, data_path):
	res = await store.load_metadata(Path(data_path) / "sessions" / "ghost")
	assert res.success
	assert res.extra["exists"] is False
	assert res.data["sequence_count"] == 0
	assert res.data["statistics"]["total_frames"] == 0


async def test_corrupt_metadata_load_error(store, data_path):
	sdir, _ = _session_paths(data_path)
	sdir.mkdir(parents=True)
	(sdir / "metadata.json").write_text("{not json", encoding="utf-8")
	res = await store.load_metadata(sdir)
	assert not res.success
	assert res.code == ErrorCode.METADATA_LOAD_ERROR


async def test_corrupt_metadata_is_rebuilt_on_append(store, data_path):
	sdir, log = _session_paths(data_path)
	await store.append(log, _entry("s1", "wave", 4))
	(sdir / "metadata.json").write_text("garbage", encoding="utf-8")
	res = await store.append(log, _entry("s1", "jump", 2))
	assert res.success
	meta = (await store.load_metadata(sdir)).data
	assert meta["sequence_count"] == 2
	assert meta["statistics"]["total_frames"] == 6


async def test_rebuild_matches_incremental(store, data_path):
	sdir, log = _session_paths(data_path)
	for tag, n in [("a", 1), ("b", 4), ("a", 7)]:
		await store.append(log, _entry("s1", tag, n))
	incremental = (await store.load_metadata(sdir)).data
	(sdir / "metadata.json").unlink()
	rebuilt = await store.rebuild_metadata(sdir)
	assert rebuilt.success
	for key in ("session_id", "sequence_count", "tags", "statistics"):
		assert rebuilt.data[key] == incremental[key]
	assert (sdir / "metadata.json").exists()


async def test_append_write_failure(store, tmp_path):
	blocker = tmp_path / "blocker"
	blocker.write_text("i am a file", encoding="utf-8")
	res = await store.append(blocker / "s1" / "sequences.jsonl", _entry("s1", "wave", 1))
	assert not res.success
	assert res.code == ErrorCode.FILE_WRITE_ERROR


async def test_metadata_failure_keeps_log(store, data_path):
	sdir, log = _session_paths(data_path)
	sdir.mkdir(parents=True)
	# a directory where metadata.json should be makes the write fail
	(sdir / "metadata.json").mkdir()
	res = await store.append(log, _entry("s1", "wave", 1))
	assert res.success
	assert "metadata_error" in res.extra
	assert len(log.read_text(encoding="utf-8").splitlines()) == 1


async def test_list_sessions(store, data_path):
	root = Path(data_path) / "sessions"
	await store.append(root / "a" / "sequences.jsonl", _entry("a", "wave", 1))
	(root / "empty").mkdir(parents=True)
	(root / "stray.txt").write_text("x", encoding="utf-8")
	res = await store.list_sessions(root)
	assert res.success
	names = [s["name"] for s in res.data]
	assert names == ["a", "empty"]
	assert res.data[0]["metadata"]["sequence_count"] == 1
	assert res.data[1]["metadata"] is None


async def test_list_sessions_missing_root(store, tmp_path):
	res = await store.list_sessions(tmp_path / "nope")
	assert res.success
	assert res.data == []


async def test_save_frame_image(store, tmp_path):
	target = tmp_path / "frames" / "f.jpg"
	res = await store.save_frame_image(target, PNG_DATA_URL)
	assert res.success
	assert res.data["type"] == "png"
	assert res.data["size"] == len(PNG_BYTES)
	assert target.read_bytes() == PNG_BYTES


async def test_save_frame_image_bad_data(store, tmp_path):
	res = await store.save_frame_image(tmp_path / "f.jpg", "not an image")
	assert not res.success
	assert res.code == ErrorCode.IMAGE_SAVE_ERROR


def test_metadata_helpers(tmp_path):
	meta = create_session_metadata("s", now_ms=10)
	apply_entry_to_metadata(meta, 2, "x", now_ms=20)
	apply_entry_to_metadata(meta, 3, "x", now_ms=30)
	assert meta.created_at == 10
	assert meta.updated_at == 30
	assert meta.statistics.avg_sequence_length == 2.5
	assert meta.statistics.pose_distribution == {"x": 2}
	frames = ensure_directory_structure(tmp_path / "sess")
	assert frames.is_dir()
	assert ensure_directory_structure(tmp_path / "sess") == frames


async def test_locks_are_released_after_use(store, data_path):
	_, log = _session_paths(data_path)
	other = Path(data_path) / "sessions" / "s2" / "sequences.jsonl"
	await asyncio.gather(*(store.append(p, _entry("s", "t", 1)) for p in [log, other] * 5))
	await store.rebuild_metadata(log.parent)
	assert store._locks == {}


async def test_null_metadata_fields_are_a_load_error(store, data_path):
	sdir, _ = _session_paths(data_path)
	sdir.mkdir(parents=True)
	(sdir / "metadata.json").write_text(json.dumps({"session_id": "s1", "created_at": None}), encoding="utf-8")
	res = await store.load_metadata(sdir)
	assert not res.success
	assert res.code == ErrorCode.METADATA_LOAD_ERROR


async def test_null_metadata_fields_list_as_none(store, data_path):
	sdir, _ = _session_paths(data_path)
	sdir.mkdir(parents=True)
	(sdir / "metadata.json").write_text(json.dumps({"sequence_count": None}), encoding="utf-8")
	res = await store.list_sessions(sdir.parent)
	assert res.success
	assert res.data[0]["name"] == "s1"
	assert res.data[0]["metadata"] is None


async def test_null_metadata_fields_are_rebuilt_on_append(store, data_path):
	sdir, log = _session_paths(data_path)
	await store.append(log, _entry("s1", "wave", 2))
	(sdir / "metadata.json").write_text(json.dumps({"statistics": {"total_frames": None}}), encoding="utf-8")
	res = await store.append(log, _entry("s1", "wave", 3))
	assert res.success
	assert res.data["metadata"]["statistics"]["total_frames"] == 5
