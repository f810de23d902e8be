"""Pydantic response models for API docs (routes return Result dicts)."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ResultResponse(BaseModel):
	"""Every route answers with a core Result: success plus data or error/code."""

	model_config = ConfigDict(extra="allow")

	success: bool
	data: Optional[Any] = None
	error: Optional[str] = None
	code: Optional[str] = None
