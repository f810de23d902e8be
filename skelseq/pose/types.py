from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# PoseNet 17-keypoint skeleton, in canonical order.
KEYPOINT_NAMES: List[str] = [
	"nose",
	"leftEye",
	"rightEye",
	"leftEar",
	"rightEar",
	"leftShoulder",
	"rightShoulder",
	"leftElbow",
	"rightElbow",
	"leftWrist",
	"rightWrist",
	"leftHip",
	"rightHip",
	"leftKnee",
	"rightKnee",
	"leftAnkle",
	"rightAnkle",
]

METADATA_VERSION = "1.0.0"


@dataclass(frozen=True)
class Position:
	x: float = 0.0
	y: float = 0.0

	def to_dict(self) -> Dict[str, float]:
		return {"x": self.x, "y": self.y}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "Position":
		return cls(x=float(obj.get("x", 0.0)), y=float(obj.get("y", 0.0)))


@dataclass(frozen=True)
class BoundingBox:
	x: float = 0.0
	y: float = 0.0
	width: float = 0.0
	height: float = 0.0

	def to_dict(self) -> Dict[str, float]:
		return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "BoundingBox":
		return cls(
			x=float(obj.get("x", 0.0)),
			y=float(obj.get("y", 0.0)),
			width=float(obj.get("width", 0.0)),
			height=float(obj.get("height", 0.0)),
		)


@dataclass(frozen=True)
class Keypoint:
	"""
	A single named 2D landmark after normalization.

	`visible` is derived: confidence >= the threshold used at normalization time.
	"""

	part: str
	position: Position = field(default_factory=Position)
	confidence: float = 0.0
	visible: bool = False

	def to_dict(self) -> Dict[str, Any]:
		return {
			"part": self.part,
			"position": self.position.to_dict(),
			"confidence": self.confidence,
			"visible": self.visible,
		}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "Keypoint":
		return cls(
			part=str(obj.get("part", "")),
			position=Position.from_dict(obj.get("position") or {}),
			confidence=float(obj.get("confidence", 0.0)),
			visible=bool(obj.get("visible", False)),
		)


@dataclass(frozen=True)
class Pose:
	"""
	One frame's canonical skeleton: always 17 keypoints in KEYPOINT_NAMES order.
	Timestamps are integer milliseconds.
	"""

	timestamp: int
	keypoints: List[Keypoint]
	confidence: float = 0.0
	bbox: BoundingBox = field(default_factory=BoundingBox)

	def visible_count(self) -> int:
		return sum(1 for kp in self.keypoints if kp.visible)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"timestamp": self.timestamp,
			"keypoints": [kp.to_dict() for kp in self.keypoints],
			"confidence": self.confidence,
			"bbox": self.bbox.to_dict(),
		}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "Pose":
		return cls(
			timestamp=int(obj.get("timestamp", 0)),
			keypoints=[Keypoint.from_dict(k) for k in (obj.get("keypoints") or [])],
			confidence=float(obj.get("confidence", 0.0)),
			bbox=BoundingBox.from_dict(obj.get("bbox") or {}),
		)


@dataclass(frozen=True)
class SequenceEntry:
	"""
	One line of a session log. Immutable once appended.
	"""

	id: str
	session: str
	sequence: str
	tag: str
	timestamp: int
	duration: int
	poses: List[Pose]
	metadata: Dict[str, Any] = field(default_factory=dict)
	frame_reference: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"session": self.session,
			"sequence": self.sequence,
			"tag": self.tag,
			"timestamp": self.timestamp,
			"duration": self.duration,
			"poses": [p.to_dict() for p in self.poses],
			"metadata": self.metadata,
			"frame_reference": self.frame_reference,
		}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "SequenceEntry":
		return cls(
			id=str(obj.get("id", "")),
			session=str(obj.get("session", "")),
			sequence=str(obj.get("sequence", "")),
			tag=str(obj.get("tag", "")),
			timestamp=int(obj.get("timestamp", 0)),
			duration=int(obj.get("duration", 0)),
			poses=[Pose.from_dict(p) for p in (obj.get("poses") or [])],
			metadata=dict(obj.get("metadata") or {}),
			frame_reference=obj.get("frame_reference"),
		)


@dataclass
class SessionStatistics:
	total_frames: int = 0
	avg_sequence_length: float = 0.0
	pose_distribution: Dict[str, int] = field(default_factory=dict)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"total_frames": self.total_frames,
			"avg_sequence_length": self.avg_sequence_length,
			"pose_distribution": dict(self.pose_distribution),
		}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "SessionStatistics":
		dist = obj.get("pose_distribution")
		return cls(
			total_frames=int(obj.get("total_frames", 0)),
			avg_sequence_length=float(obj.get("avg_sequence_length", 0.0)),
			pose_distribution={str(k): int(v) for k, v in dist.items()} if isinstance(dist, dict) else {},
		)


@dataclass
class SessionMetadata:
	"""
	Aggregate index for one session, kept next to its log as metadata.json.
	Mutated additively on every append; can always be rebuilt by replaying the log.
	"""

	session_id: str
	created_at: int
	updated_at: int
	sequence_count: int = 0
	# Ordered set: first-seen order is kept on disk.
	tags: List[str] = field(default_factory=list)
	statistics: SessionStatistics = field(default_factory=SessionStatistics)
	version: str = METADATA_VERSION

	def to_dict(self) -> Dict[str, Any]:
		return {
			"session_id": self.session_id,
			"created_at": self.created_at,
			"updated_at": self.updated_at,
			"sequence_count": self.sequence_count,
			"tags": list(self.tags),
			"statistics": self.statistics.to_dict(),
			"version": self.version,
		}

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "SessionMetadata":
		if not isinstance(obj, dict):
			raise ValueError("metadata must be a JSON object")
		tags = obj.get("tags")
		stats = obj.get("statistics")
		try:
			return cls(
				session_id=str(obj.get("session_id", "")),
				created_at=int(obj.get("created_at", 0)),
				updated_at=int(obj.get("updated_at", 0)),
				sequence_count=int(obj.get("sequence_count", 0)),
				tags=[str(t) for t in tags] if isinstance(tags, list) else [],
				statistics=SessionStatistics.from_dict(stats if isinstance(stats, dict) else {}),
				version=str(obj.get("version", METADATA_VERSION)),
			)
		except TypeError as e:
			# e.g. {"created_at": null}: valid JSON, unusable metadata
			raise ValueError(f"malformed metadata: {e}") from e
