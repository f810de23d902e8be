"""
Pose data types.

This package defines the canonical 17-landmark skeleton shared by the
normalizer, the entry builder and the session store.
"""

from skelseq.pose.types import (
	KEYPOINT_NAMES,
	BoundingBox,
	Keypoint,
	Pose,
	Position,
	SequenceEntry,
	SessionMetadata,
)

__all__ = [
	"KEYPOINT_NAMES",
	"BoundingBox",
	"Keypoint",
	"Pose",
	"Position",
	"SequenceEntry",
	"SessionMetadata",
]
