"""
Sequence entry construction and the add_sequence entry point.

validate -> normalize -> build entry happen here without any I/O; the finished
entry is then handed to the injected StorageBackend for persistence.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from skelseq import __version__
from skelseq.config import AppConfig, get_config
from skelseq.encoding import (
	generate_frame_reference,
	generate_sequence_id,
	generate_session_dir,
	generate_session_path,
)
from skelseq.normalizer import normalize_poses, round3
from skelseq.options import SequenceOptions
from skelseq.pose.types import Pose, SequenceEntry
from skelseq.results import ErrorCode, Result
from skelseq.storage_backend import StorageBackend
from skelseq.validation import validate_inputs

logger = logging.getLogger(__name__)

POSE_SOURCE = "posenet"


def calculate_sequence_duration(poses: List[Pose]) -> int:
	if len(poses) < 2:
		return 0
	return int(poses[-1].timestamp - poses[0].timestamp)


def calculate_average_confidence(poses: List[Pose]) -> float:
	if not poses:
		return 0.0
	return round3(sum(p.confidence for p in poses) / len(poses))


def assess_keypoint_quality(poses: List[Pose]) -> str:
	"""Bucket the mean number of visible keypoints per pose."""
	if not poses:
		return "none"
	avg_visible = sum(p.visible_count() for p in poses) / len(poses)
	if avg_visible >= 15:
		return "high"
	if avg_visible >= 10:
		return "medium"
	if avg_visible >= 5:
		return "low"
	return "poor"


def calculate_frame_rate(poses: List[Pose]) -> float:
	"""Poses per second over the sequence span, 1 decimal. 0 when there is no span."""
	if len(poses) < 2:
		return 0.0
	duration_ms = calculate_sequence_duration(poses)
	if duration_ms <= 0:
		return 0.0
	fps = len(poses) / (duration_ms / 1000.0)
	return int(fps * 10.0 + 0.5) / 10.0


def extract_metadata(poses: List[Pose], options: SequenceOptions) -> Dict[str, Any]:
	first = poses[0] if poses else None
	last = poses[-1] if poses else None
	meta: Dict[str, Any] = {
		"pose_count": len(poses),
		"avg_confidence": calculate_average_confidence(poses),
		"keypoint_quality": assess_keypoint_quality(poses),
		"frame_rate": calculate_frame_rate(poses),
		"sequence_info": {
			"start_timestamp": first.timestamp if first else 0,
			"end_timestamp": last.timestamp if last else 0,
			"frame_count": len(poses),
		},
	}
	if options.include_metadata:
		meta["source"] = POSE_SOURCE
		meta["version"] = __version__
		meta["normalization"] = {
			"scale_normalized": bool(options.normalize_scale),
			"confidence_threshold": float(options.confidence_threshold),
		}
	return meta


def build_sequence_entry(
	session: str,
	sequence: str,
	poses: List[Pose],
	tag: str,
	frame: Optional[str] = None,
	options: Optional[SequenceOptions] = None,
	timestamp_ms: Optional[int] = None,
) -> SequenceEntry:
	"""
	Assemble the record for already-normalized poses. The entry only ever
	carries a frame path, never the image bytes.
	"""
	opts = options or SequenceOptions()
	ts = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
	frame_reference = None
	if opts.save_frame and frame:
		frame_reference = generate_frame_reference(session, sequence, opts.data_path, timestamp_ms=ts)
	return SequenceEntry(
		id=generate_sequence_id(session, sequence, timestamp_ms=ts),
		session=session,
		sequence=sequence,
		tag=tag,
		timestamp=ts,
		duration=calculate_sequence_duration(poses),
		poses=list(poses),
		metadata=extract_metadata(poses, opts),
		frame_reference=frame_reference,
	)


@dataclass(frozen=True)
class PersistencePlan:
	session_path: str
	frame_reference: Optional[str] = None
	frame_data: Optional[str] = None


@dataclass(frozen=True)
class PreparedSequence:
	entry: SequenceEntry
	plan: PersistencePlan


def prepare_sequence(
	session: Any,
	sequence: Any,
	poses: Any,
	tag: Any,
	frame: Any = None,
	options: Optional[Mapping[str, Any]] = None,
	cfg: Optional[AppConfig] = None,
) -> Result:
	"""
	Pure half of add_sequence. On success, data is a PreparedSequence.
	Fails with VALIDATION_ERROR before touching anything, or PROCESSING_ERROR
	if normalization/building breaks on validated input.
	"""
	cfg = cfg or get_config()
	validation = validate_inputs(session, sequence, poses, tag, frame, options, limits=cfg.validation)
	if not validation.is_valid:
		return Result.fail(validation.error or "Invalid input", ErrorCode.VALIDATION_ERROR, errors=validation.errors)

	try:
		opts = SequenceOptions.from_mapping(options, cfg)
		normalized = normalize_poses(poses, opts, frame_interval_ms=cfg.normalization.frame_interval_ms)
		entry = build_sequence_entry(session, sequence, normalized, tag, frame, opts)
	except (ValueError, TypeError, KeyError) as e:
		logger.exception("[Tagger] processing failed for %s/%s", session, sequence)
		return Result.fail(str(e), ErrorCode.PROCESSING_ERROR)

	plan = PersistencePlan(
		session_path=generate_session_path(session, opts.data_path),
		frame_reference=entry.frame_reference,
		frame_data=frame if entry.frame_reference else None,
	)
	return Result.ok(PreparedSequence(entry=entry, plan=plan))


class SequenceTagger:
	"""
	Host-facing entry point. The storage backend is chosen by the host and
	passed in; the tagger never inspects where it is running.
	"""

	def __init__(self, backend: StorageBackend, cfg: Optional[AppConfig] = None) -> None:
		self.backend = backend
		self.cfg = cfg or get_config()

	async def add_sequence(
		self,
		session: Any,
		sequence: Any,
		poses: Any,
		tag: Any,
		frame: Any = None,
		options: Optional[Mapping[str, Any]] = None,
	) -> Result:
		prepared = prepare_sequence(session, sequence, poses, tag, frame, options, cfg=self.cfg)
		if not prepared.success:
			return prepared

		p: PreparedSequence = prepared.data
		saved = await self.backend.save_sequence(
			p.plan.session_path,
			p.entry,
			frame_reference=p.plan.frame_reference,
			frame_data=p.plan.frame_data,
		)
		if not saved.success:
			return saved

		saved_info = saved.data if isinstance(saved.data, dict) else {}
		extra = {k: v for k, v in saved.extra.items() if k in ("metadata_error", "frame_error")}
		if p.entry.frame_reference and not saved_info.get("frame_reference"):
			# Log entry keeps its reference; the caller learns the image is missing.
			extra["frame_saved"] = False
		logger.info("[Tagger] %s: %d poses tagged %r -> %s", p.entry.id, len(p.entry.poses), p.entry.tag, p.plan.session_path)
		return Result.ok(p.entry.to_dict(), session_path=p.plan.session_path, **extra)

	async def list_sessions(self) -> Result:
		return await self.backend.list_sessions()

	async def load_session_metadata(self, session: str) -> Result:
		return await self.backend.load_session_metadata(generate_session_dir(session, self.cfg.storage.data_path))

	async def validate_session(self, session: str) -> Result:
		return await self.backend.validate_session(session)
