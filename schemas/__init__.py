"""Pydantic request/response models for API validation and docs."""
from schemas.requests import AddSequencePayload, SequenceOptionsPayload
from schemas.responses import ResultResponse

__all__ = [
	"AddSequencePayload",
	"SequenceOptionsPayload",
	"ResultResponse",
]
