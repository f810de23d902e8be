"""
Input validation for add_sequence.

Top-level checks are exhaustive: every failing field contributes a message and
the messages are joined. Collections short-circuit: the first bad pose (or
keypoint inside it) is reported with its index and scanning stops there.
Nothing downstream re-checks these rules.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from skelseq.config import ValidationConfig, get_config
from skelseq.options import canonical_options

SESSION_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
FRAME_DATA_URL_PATTERN = re.compile(r"^data:image/(jpeg|jpg|png|gif|bmp|webp);base64,([A-Za-z0-9+/=]+)$")


@dataclass
class ValidationResult:
	is_valid: bool
	error: Optional[str] = None
	errors: List[str] = field(default_factory=list)

	@classmethod
	def ok(cls) -> "ValidationResult":
		return cls(is_valid=True)

	@classmethod
	def fail(cls, error: str) -> "ValidationResult":
		return cls(is_valid=False, error=error, errors=[error])

	@classmethod
	def from_errors(cls, errors: List[str]) -> "ValidationResult":
		if not errors:
			return cls.ok()
		return cls(is_valid=False, error="; ".join(errors), errors=list(errors))


def _limits(limits: Optional[ValidationConfig]) -> ValidationConfig:
	return limits or get_config().validation


def _is_number(v: Any) -> bool:
	# bool is an int subclass; a True score is a caller bug, not 1.0.
	return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_unit_interval(v: Any) -> bool:
	return _is_number(v) and 0 <= v <= 1


def _non_empty_str(v: Any) -> bool:
	return isinstance(v, str) and len(v.strip()) > 0


def validate_inputs(
	session: Any,
	sequence: Any,
	poses: Any,
	tag: Any,
	frame: Any = None,
	options: Any = None,
	limits: Optional[ValidationConfig] = None,
) -> ValidationResult:
	"""Validate every add_sequence argument and collect all field-level errors."""
	lim = _limits(limits)
	errors: List[str] = []

	if not _non_empty_str(session):
		errors.append("Session must be a non-empty string")
	elif not SESSION_PATTERN.match(session.strip()):
		errors.append("Session must contain only alphanumeric characters, underscores, and hyphens")

	if not _non_empty_str(sequence):
		errors.append("Sequence must be a non-empty string")

	pose_validation = validate_poses(poses, limits=lim)
	if not pose_validation.is_valid:
		errors.append(f"Poses validation failed: {pose_validation.error}")

	if not _non_empty_str(tag):
		errors.append("Tag must be a non-empty string")
	elif len(tag.strip()) > lim.max_tag_length:
		errors.append(f"Tag must be less than {lim.max_tag_length} characters")

	if options is not None and not isinstance(options, Mapping):
		errors.append("Options must be an object")
		opts: Dict[str, Any] = {}
	else:
		opts = canonical_options(options)
		option_validation = validate_options(opts)
		errors.extend(option_validation.errors)

	if opts.get("save_frame") and frame:
		frame_validation = validate_frame(frame, limits=lim)
		if not frame_validation.is_valid:
			errors.append(f"Frame validation failed: {frame_validation.error}")

	return ValidationResult.from_errors(errors)


def validate_poses(poses: Any, limits: Optional[ValidationConfig] = None) -> ValidationResult:
	lim = _limits(limits)
	if not isinstance(poses, list):
		return ValidationResult.fail("Poses must be an array")
	if len(poses) == 0:
		return ValidationResult.fail("Poses array cannot be empty")
	if len(poses) > lim.max_poses:
		return ValidationResult.fail(f"Too many poses (maximum {lim.max_poses} per sequence)")

	for i, pose in enumerate(poses):
		res = validate_single_pose(pose)
		if not res.is_valid:
			return ValidationResult.fail(f"Pose at index {i}: {res.error}")
	return ValidationResult.ok()


def validate_single_pose(pose: Any) -> ValidationResult:
	if not isinstance(pose, Mapping):
		return ValidationResult.fail("Pose must be an object")

	keypoints = pose.get("keypoints")
	if not isinstance(keypoints, list):
		return ValidationResult.fail("Pose must have keypoints array")
	if len(keypoints) == 0:
		return ValidationResult.fail("Pose keypoints array cannot be empty")

	for i, kp in enumerate(keypoints):
		res = validate_keypoint(kp)
		if not res.is_valid:
			return ValidationResult.fail(f"Keypoint at index {i}: {res.error}")

	for key in ("score", "confidence"):
		v = pose.get(key)
		if v is not None and not _is_unit_interval(v):
			return ValidationResult.fail(f"Pose {key} must be a number between 0 and 1")

	ts = pose.get("timestamp")
	if ts is not None and not (_is_number(ts) and math.isfinite(ts) and ts >= 0):
		return ValidationResult.fail("Pose timestamp must be a non-negative number")

	return ValidationResult.ok()


def validate_keypoint(keypoint: Any) -> ValidationResult:
	if not isinstance(keypoint, Mapping):
		return ValidationResult.fail("Keypoint must be an object")

	part = keypoint.get("part")
	if not isinstance(part, str) or not part:
		return ValidationResult.fail("Keypoint must have a part name (string)")

	position = keypoint.get("position")
	if not isinstance(position, Mapping):
		return ValidationResult.fail("Keypoint must have a position object")

	x = position.get("x")
	y = position.get("y")
	if not _is_number(x) or not _is_number(y):
		return ValidationResult.fail("Keypoint position must have numeric x and y coordinates")
	if not math.isfinite(x) or not math.isfinite(y):
		return ValidationResult.fail("Keypoint position coordinates must be finite numbers")

	for key in ("score", "confidence"):
		v = keypoint.get(key)
		if v is not None and not _is_unit_interval(v):
			return ValidationResult.fail(f"Keypoint {key} must be a number between 0 and 1")

	return ValidationResult.ok()


def validate_frame(frame: Any, limits: Optional[ValidationConfig] = None) -> ValidationResult:
	lim = _limits(limits)
	if not isinstance(frame, str) or not frame:
		return ValidationResult.fail("Frame must be a string")

	m = FRAME_DATA_URL_PATTERN.match(frame)
	if not m:
		return ValidationResult.fail("Frame must be a valid base64 data URL (data:image/[type];base64,[data])")

	# base64 carries 3 bytes per 4 characters.
	estimated_mb = (len(m.group(2)) * 0.75) / (1024 * 1024)
	if estimated_mb > lim.max_frame_mb:
		return ValidationResult.fail(f"Frame image is too large (maximum {lim.max_frame_mb:g}MB)")

	return ValidationResult.ok()


def validate_options(options: Any) -> ValidationResult:
	"""Type-check the recognised option keys. Missing options are fine."""
	if not isinstance(options, Mapping):
		return ValidationResult.ok()
	opts = canonical_options(options)
	errors: List[str] = []

	for key in ("save_frame", "normalize_scale", "include_metadata"):
		v = opts.get(key)
		if v is not None and not isinstance(v, bool):
			errors.append(f"{key} option must be a boolean")

	data_path = opts.get("data_path")
	if data_path is not None and not _non_empty_str(data_path):
		errors.append("data_path option must be a non-empty string")

	threshold = opts.get("confidence_threshold")
	if threshold is not None and not _is_unit_interval(threshold):
		errors.append("confidence_threshold must be a number between 0 and 1")

	return ValidationResult.from_errors(errors)


def get_validation_summary(poses: Any) -> Dict[str, Any]:
	"""
	Non-failing health report over a raw poses list: counts valid/invalid poses
	and keypoints and the mean of the declared keypoint confidences.
	"""
	if not isinstance(poses, list):
		return {"valid": False, "summary": "Invalid poses data"}

	summary: Dict[str, Any] = {
		"total_poses": len(poses),
		"valid_poses": 0,
		"invalid_poses": 0,
		"total_keypoints": 0,
		"valid_keypoints": 0,
		"avg_confidence": 0.0,
		"issues": [],
	}
	total_conf = 0.0
	conf_count = 0

	for i, pose in enumerate(poses):
		res = validate_single_pose(pose)
		if not res.is_valid:
			summary["invalid_poses"] += 1
			summary["issues"].append(f"Pose {i}: {res.error}")
			continue
		summary["valid_poses"] += 1
		for kp in pose["keypoints"]:
			summary["total_keypoints"] += 1
			if validate_keypoint(kp).is_valid:
				summary["valid_keypoints"] += 1
			score = kp.get("score") if kp.get("score") is not None else kp.get("confidence")
			if _is_number(score) and score:
				total_conf += float(score)
				conf_count += 1

	if conf_count:
		summary["avg_confidence"] = round(total_conf / conf_count, 3)

	return {"valid": summary["invalid_poses"] == 0, "summary": summary}
