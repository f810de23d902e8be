"""Result values returned by every public operation, plus the error code taxonomy."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class ErrorCode:
	VALIDATION_ERROR = "VALIDATION_ERROR"
	PROCESSING_ERROR = "PROCESSING_ERROR"
	FILE_WRITE_ERROR = "FILE_WRITE_ERROR"
	IMAGE_SAVE_ERROR = "IMAGE_SAVE_ERROR"
	METADATA_LOAD_ERROR = "METADATA_LOAD_ERROR"
	SESSION_LIST_ERROR = "SESSION_LIST_ERROR"
	SEQUENCES_LOAD_ERROR = "SEQUENCES_LOAD_ERROR"
	BRIDGE_ERROR = "BRIDGE_ERROR"
	UNKNOWN_OPERATION = "UNKNOWN_OPERATION"


@dataclass
class Result:
	"""
	Outcome of a core operation. Operations never raise to their caller;
	failures come back as success=False with a message and an ErrorCode.
	"""

	success: bool
	data: Any = None
	error: Optional[str] = None
	code: Optional[str] = None
	extra: Dict[str, Any] = field(default_factory=dict)

	@classmethod
	def ok(cls, data: Any = None, **extra: Any) -> "Result":
		return cls(success=True, data=data, extra=dict(extra))

	@classmethod
	def fail(cls, error: str, code: str, **extra: Any) -> "Result":
		return cls(success=False, error=str(error), code=code, extra=dict(extra))

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {"success": bool(self.success)}
		if self.data is not None:
			out["data"] = self.data
		if self.error is not None:
			out["error"] = self.error
		if self.code is not None:
			out["code"] = self.code
		out.update(self.extra)
		return out

	@classmethod
	def from_dict(cls, obj: Dict[str, Any]) -> "Result":
		if not isinstance(obj, dict):
			return cls.fail("Malformed result payload", ErrorCode.BRIDGE_ERROR)
		extra = {k: v for k, v in obj.items() if k not in ("success", "data", "error", "code")}
		return cls(
			success=bool(obj.get("success")),
			data=obj.get("data"),
			error=obj.get("error"),
			code=obj.get("code"),
			extra=extra,
		)
