"""Pydantic request body models.

Fields are deliberately loose (Any) where the core validator owns the rules, so
callers get the same error messages over HTTP as in-process.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SequenceOptionsPayload(BaseModel):
	"""Options for add_sequence. camelCase aliases are accepted for JS callers."""

	model_config = ConfigDict(populate_by_name=True, extra="allow")

	save_frame: Any = Field(None, alias="saveFrame", description="Persist the frame image and reference it")
	normalize_scale: Any = Field(None, alias="normalizeScale", description="Rescale visible keypoints into [0,1]")
	include_metadata: Any = Field(None, alias="includeMetadata", description="Add source/version/normalization info")
	data_path: Any = Field(None, alias="dataPath", description="Root data folder; default from config")
	confidence_threshold: Any = Field(None, alias="confidenceThreshold", description="Visibility threshold [0..1]")

	def to_options(self) -> Dict[str, Any]:
		"""Only the options the caller actually set, snake_case keys."""
		return self.model_dump(exclude_none=True, by_alias=False)


class AddSequencePayload(BaseModel):
	"""Request body for POST /api/sequences."""

	session: Any = Field(None, description="Session name ([A-Za-z0-9_-]+)")
	sequence: Any = Field(None, description="Sequence name")
	poses: Any = Field(None, description="Raw pose detector output, 1..1000 poses")
	tag: Any = Field(None, description="Label for the sequence (<= 100 chars)")
	frame: Optional[Any] = Field(None, description="Optional base64 image data URL")
	options: Optional[SequenceOptionsPayload] = Field(None, description="add_sequence options")
