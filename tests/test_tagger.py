"""Tests for entry building and SequenceTagger.add_sequence."""
import json
from pathlib import Path

from skelseq.normalizer import normalize_poses
from skelseq.options import SequenceOptions
from skelseq.pose.types import SequenceEntry
from skelseq.results import ErrorCode, Result
from skelseq.storage_backend import StorageBackend
from skelseq.tagger import (
	assess_keypoint_quality,
	build_sequence_entry,
	calculate_average_confidence,
	calculate_frame_rate,
	calculate_sequence_duration,
	prepare_sequence,
)
from tests.conftest import PNG_BYTES, PNG_DATA_URL, make_keypoint, make_pose


class RecordingBackend(StorageBackend):
	def __init__(self, result=None):
		self.calls = []
		self.result = result

	def name(self):
		return "recording"

	async def invoke(self, operation, payload):
		self.calls.append((operation, payload))
		if self.result is not None:
			return self.result
		return Result.ok({"sequence_id": payload["data"]["id"], "frame_reference": payload.get("frame_reference")})


def _poses(n, step=100, score=0.8):
	return normalize_poses([make_pose(score=score, timestamp=i * step) for i in range(n)])


def test_duration_and_frame_rate():
	poses = _poses(11, step=100)
	assert calculate_sequence_duration(poses) == 1000
	assert calculate_frame_rate(poses) == 11.0
	assert calculate_sequence_duration(poses[:1]) == 0
	assert calculate_frame_rate(poses[:1]) == 0


def test_frame_rate_zero_when_no_span():
	poses = normalize_poses([make_pose(timestamp=5), make_pose(timestamp=5)])
	assert calculate_frame_rate(poses) == 0


def test_average_confidence():
	poses = normalize_poses([make_pose(score=0.5), make_pose(score=0.25)])
	assert calculate_average_confidence(poses) == 0.375
	assert calculate_average_confidence([]) == 0


def test_keypoint_quality_buckets(full_pose):
	assert assess_keypoint_quality([]) == "none"
	assert assess_keypoint_quality(normalize_poses([full_pose])) == "high"
	assert assess_keypoint_quality(_poses(2)) == "poor"
	five = [make_keypoint(n, 1, 1) for n in ("nose", "leftEye", "rightEye", "leftEar", "rightEar")]
	assert assess_keypoint_quality(normalize_poses([make_pose(five)])) == "low"


def test_build_entry_metadata():
	poses = _poses(3, step=50)
	entry = build_sequence_entry("s1", "seq1", poses, "wave", timestamp_ms=1700000000000)
	assert entry.timestamp == 1700000000000
	assert entry.id.startswith("s1_seq1_1700000000000_")
	assert entry.duration == 100
	assert entry.frame_reference is None
	m = entry.metadata
	assert m["pose_count"] == 3
	assert m["avg_confidence"] == 0.8
	assert m["keypoint_quality"] == "poor"
	assert m["frame_rate"] == 30.0
	assert m["sequence_info"] == {"start_timestamp": 0, "end_timestamp": 100, "frame_count": 3}
	assert m["source"] == "posenet"
	assert m["normalization"] == {"scale_normalized": False, "confidence_threshold": 0.3}


def test_build_entry_without_extra_metadata():
	entry = build_sequence_entry("s1", "seq1", _poses(1), "wave", options=SequenceOptions(include_metadata=False))
	assert "source" not in entry.metadata
	assert "normalization" not in entry.metadata
	assert entry.metadata["pose_count"] == 1


def test_frame_reference_only_when_saving():
	poses = _poses(1)
	opts = SequenceOptions(save_frame=True, data_path="./data")
	assert build_sequence_entry("s1", "seq1", poses, "t", frame=None, options=opts).frame_reference is None
	assert build_sequence_entry("s1", "seq1", poses, "t", frame=PNG_DATA_URL).frame_reference is None
	entry = build_sequence_entry("s1", "seq1", poses, "t", frame=PNG_DATA_URL, options=opts, timestamp_ms=7)
	assert entry.frame_reference == "./data/sessions/s1/frames/seq1_7.jpg"
	assert PNG_DATA_URL not in json.dumps(entry.to_dict())


def test_entry_json_round_trip(full_pose):
	poses = normalize_poses([dict(full_pose, timestamp=i * 33) for i in range(4)], SequenceOptions(normalize_scale=True))
	entry = build_sequence_entry("s1", "seq1", poses, "wave", frame=PNG_DATA_URL, options=SequenceOptions(save_frame=True))
	again = SequenceEntry.from_dict(json.loads(json.dumps(entry.to_dict())))
	assert again == entry
	assert again.to_dict() == entry.to_dict()


def test_prepare_sequence_validation_error(cfg):
	res = prepare_sequence("s1", "seq1", [], "wave", cfg=cfg)
	assert not res.success
	assert res.code == ErrorCode.VALIDATION_ERROR
	assert "cannot be empty" in res.error


def test_prepare_sequence_plan(cfg):
	res = prepare_sequence("s1", "seq1", [make_pose()], "wave", PNG_DATA_URL, {"saveFrame": True}, cfg=cfg)
	assert res.success
	plan = res.data.plan
	assert plan.session_path == f"{cfg.storage.data_path}/sessions/s1/sequences.jsonl"
	assert plan.frame_reference == res.data.entry.frame_reference
	assert plan.frame_data == PNG_DATA_URL


async def test_add_sequence_scenario(tagger, data_path):
	poses = [{"keypoints": [{"part": "nose", "position": {"x": 320, "y": 240}, "score": 0.9}], "score": 0.85}]
	res = await tagger.add_sequence("s1", "seq1", poses, "wave", None, {"saveFrame": False})
	assert res.success, res.error
	data = res.data
	kps = data["poses"][0]["keypoints"]
	assert len(kps) == 17
	assert kps[0] == {"part": "nose", "position": {"x": 320, "y": 240}, "confidence": 0.9, "visible": True}
	assert kps[3]["part"] == "leftEar"
	assert kps[3]["confidence"] == 0
	assert kps[3]["visible"] is False
	assert data["frame_reference"] is None

	log = Path(data_path) / "sessions" / "s1" / "sequences.jsonl"
	lines = log.read_text(encoding="utf-8").splitlines()
	assert len(lines) == 1
	assert json.loads(lines[0]) == data


async def test_add_sequence_empty_poses(tagger, data_path):
	res = await tagger.add_sequence("s1", "seq1", [], "wave")
	assert not res.success
	assert res.code == ErrorCode.VALIDATION_ERROR
	assert "cannot be empty" in res.error
	assert not (Path(data_path) / "sessions").exists()


async def test_add_sequence_bad_score(tagger):
	poses = [make_pose([make_keypoint("nose", 1, 2, score=1.5)])]
	res = await tagger.add_sequence("s1", "seq1", poses, "wave")
	assert not res.success
	assert "between 0 and 1" in res.error
	assert res.to_dict()["code"] == "VALIDATION_ERROR"


async def test_add_sequence_saves_frame(tagger):
	res = await tagger.add_sequence("s1", "seq1", [make_pose()], "wave", PNG_DATA_URL, {"saveFrame": True})
	assert res.success
	ref = res.data["frame_reference"]
	assert ref.endswith(".jpg")
	assert Path(ref).read_bytes() == PNG_BYTES
	assert "frame_saved" not in res.extra


async def test_add_sequence_uses_injected_backend(cfg):
	backend = RecordingBackend()
	from skelseq.tagger import SequenceTagger

	res = await SequenceTagger(backend, cfg=cfg).add_sequence("s1", "seq1", [make_pose()], "wave")
	assert res.success
	op, payload = backend.calls[0]
	assert op == "save-sequence"
	assert payload["session_path"].endswith("/sessions/s1/sequences.jsonl")
	assert payload["data"]["id"] == res.data["id"]
	assert payload["frame_data"] is None


async def test_add_sequence_propagates_storage_failure(cfg):
	backend = RecordingBackend(Result.fail("disk full", ErrorCode.FILE_WRITE_ERROR))
	from skelseq.tagger import SequenceTagger

	res = await SequenceTagger(backend, cfg=cfg).add_sequence("s1", "seq1", [make_pose()], "wave")
	assert not res.success
	assert res.code == ErrorCode.FILE_WRITE_ERROR


async def test_tagger_lists_and_loads(tagger):
	await tagger.add_sequence("s1", "seq1", [make_pose()], "wave")
	listed = await tagger.list_sessions()
	assert listed.success
	assert [s["name"] for s in listed.data] == ["s1"]
	meta = await tagger.load_session_metadata("s1")
	assert meta.data["sequence_count"] == 1
	checked = await tagger.validate_session("bad name")
	assert checked.extra == {"valid": True, "sanitized": "bad_name"}
