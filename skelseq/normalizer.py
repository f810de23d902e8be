"""
Pose normalization.

Turns a validated, variable-length keypoint list into the canonical
17-keypoint skeleton. Everything here is pure: no I/O, no clock reads and no
randomness, so the same input always produces the same output.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from skelseq.options import SequenceOptions
from skelseq.pose.types import KEYPOINT_NAMES, BoundingBox, Keypoint, Pose, Position

DEFAULT_FRAME_INTERVAL_MS = 33


def round3(v: float) -> float:
	"""Round half up to 3 decimals."""
	return math.floor(float(v) * 1000.0 + 0.5) / 1000.0


def normalize_confidence(score: Any) -> float:
	"""Clamp to [0, 1] and round to 3 decimals. Missing/non-numeric -> 0."""
	if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
		return 0.0
	return round3(max(0.0, min(1.0, float(score))))


def _declared_score(obj: Mapping[str, Any]) -> Any:
	score = obj.get("score")
	return score if score is not None else obj.get("confidence")


def _has_valid_position(kp: Any) -> bool:
	if not isinstance(kp, Mapping) or not kp.get("part"):
		return False
	pos = kp.get("position")
	if not isinstance(pos, Mapping):
		return False
	x, y = pos.get("x"), pos.get("y")
	for v in (x, y):
		if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
			return False
	return True


def calculate_raw_bounding_box(keypoints: Sequence[Any]) -> Dict[str, float]:
	"""
	Extent of every raw keypoint with a usable position, whatever its part name.
	Returns min/max corners plus width/height; all zeros if nothing qualifies.
	"""
	valid = [kp for kp in keypoints if _has_valid_position(kp)]
	if not valid:
		return {"min_x": 0.0, "min_y": 0.0, "max_x": 0.0, "max_y": 0.0, "width": 0.0, "height": 0.0}
	xs = [float(kp["position"]["x"]) for kp in valid]
	ys = [float(kp["position"]["y"]) for kp in valid]
	min_x, max_x = min(xs), max(xs)
	min_y, max_y = min(ys), max(ys)
	return {
		"min_x": min_x,
		"min_y": min_y,
		"max_x": max_x,
		"max_y": max_y,
		"width": max_x - min_x,
		"height": max_y - min_y,
	}


def calculate_bounding_box(keypoints: Sequence[Keypoint]) -> BoundingBox:
	"""Axis-aligned box over visible keypoints; zero box when none are visible."""
	visible = [kp for kp in keypoints if kp.visible]
	if not visible:
		return BoundingBox()
	xs = [kp.position.x for kp in visible]
	ys = [kp.position.y for kp in visible]
	min_x, min_y = min(xs), min(ys)
	return BoundingBox(
		x=round3(min_x),
		y=round3(min_y),
		width=round3(max(xs) - min_x),
		height=round3(max(ys) - min_y),
	)


def _scale_into_box(x: float, y: float, box: Dict[str, float]) -> Optional[Position]:
	"""Raw (x, y) mapped into [0, 1] against the raw box; None when it cannot be scaled."""
	if box["width"] <= 0 or box["height"] <= 0:
		return None
	if not (box["min_x"] <= x <= box["max_x"] and box["min_y"] <= y <= box["max_y"]):
		return None
	return Position(
		x=round3((x - box["min_x"]) / box["width"]),
		y=round3((y - box["min_y"]) / box["height"]),
	)


def normalize_keypoints(
	keypoints: Any,
	confidence_threshold: float = 0.3,
	normalize_scale: bool = False,
) -> List[Keypoint]:
	"""
	Always returns 17 keypoints in KEYPOINT_NAMES order. Missing parts become
	invisible placeholders at (0, 0); parts outside the skeleton are dropped.
	When a part appears more than once, the last occurrence wins.
	"""
	raw = keypoints if isinstance(keypoints, list) else []
	by_part: Dict[str, Mapping[str, Any]] = {}
	for kp in raw:
		if _has_valid_position(kp):
			by_part[str(kp["part"])] = kp

	box = calculate_raw_bounding_box(raw) if normalize_scale else None

	out: List[Keypoint] = []
	for part in KEYPOINT_NAMES:
		kp = by_part.get(part)
		if kp is None:
			out.append(Keypoint(part=part, position=Position(0.0, 0.0), confidence=0.0, visible=False))
			continue

		confidence = normalize_confidence(_declared_score(kp))
		visible = confidence >= confidence_threshold
		raw_x, raw_y = kp["position"]["x"], kp["position"]["y"]
		position = Position(x=round3(raw_x), y=round3(raw_y))
		if box is not None and visible:
			# containment and scaling use raw values; only the output is rounded
			scaled = _scale_into_box(raw_x, raw_y, box)
			if scaled is not None:
				position = scaled
		out.append(Keypoint(part=part, position=position, confidence=confidence, visible=visible))
	return out


def _pose_timestamp(pose: Mapping[str, Any], frame_index: int, frame_interval_ms: int) -> int:
	ts = pose.get("timestamp")
	if isinstance(ts, (int, float)) and not isinstance(ts, bool) and math.isfinite(ts) and ts >= 0:
		return int(math.floor(float(ts) + 0.5))
	return int(frame_index) * int(frame_interval_ms)


def normalize_single_pose(
	pose: Mapping[str, Any],
	frame_index: int = 0,
	options: Optional[SequenceOptions] = None,
	frame_interval_ms: int = DEFAULT_FRAME_INTERVAL_MS,
) -> Pose:
	if not isinstance(pose, Mapping):
		raise ValueError("Invalid pose data")
	opts = options or SequenceOptions()
	keypoints = normalize_keypoints(
		pose.get("keypoints") or [],
		confidence_threshold=opts.confidence_threshold,
		normalize_scale=opts.normalize_scale,
	)
	return Pose(
		timestamp=_pose_timestamp(pose, frame_index, frame_interval_ms),
		keypoints=keypoints,
		confidence=normalize_confidence(_declared_score(pose)),
		bbox=calculate_bounding_box(keypoints),
	)


def normalize_poses(
	raw_poses: Any,
	options: Optional[SequenceOptions] = None,
	frame_interval_ms: int = DEFAULT_FRAME_INTERVAL_MS,
) -> List[Pose]:
	if not isinstance(raw_poses, list):
		raise ValueError("Poses must be an array")
	return [normalize_single_pose(p, i, options, frame_interval_ms) for i, p in enumerate(raw_poses)]


def get_keypoint_stats(keypoints: Sequence[Keypoint]) -> Dict[str, Any]:
	"""Visibility and confidence summary for one normalized pose."""
	total = len(keypoints)
	visible = sum(1 for kp in keypoints if kp.visible)
	avg = (sum(kp.confidence for kp in keypoints) / total) if total else 0.0
	if visible >= 15:
		quality = "high"
	elif visible >= 10:
		quality = "medium"
	else:
		quality = "low"
	return {
		"total": total,
		"visible": visible,
		"missing": total - visible,
		"avg_confidence": round3(avg),
		"quality": quality,
	}
