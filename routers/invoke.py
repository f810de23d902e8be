"""Bridge endpoint. Route: POST /invoke/{operation}, the server side of HttpBridgeStorageBackend."""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from app_state import AppState
from deps import get_state
from routers.common import result_response
from schemas.responses import ResultResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["invoke"])


@router.post("/invoke/{operation}", response_model=ResultResponse)
async def invoke_operation(operation: str, payload: Optional[Dict[str, Any]] = Body(None), st: AppState = Depends(get_state)):
	"""Run one storage operation (save-sequence, list-sessions, ...) against the local filesystem."""
	result = await st.backend.invoke(operation, payload or {})
	if not result.success:
		logger.warning("[Invoke] %s failed: %s (%s)", operation, result.error, result.code)
	return result_response(result)
