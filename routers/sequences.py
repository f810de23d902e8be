"""Sequence and session API. Routes: /api/sequences, /api/sessions*, /api/tags."""
import asyncio
import logging

from fastapi import APIRouter, Depends

from app_state import AppState
from deps import get_state
from routers.common import result_response
from schemas.requests import AddSequencePayload
from schemas.responses import ResultResponse
from skelseq.analytics import collect_all_tags
from skelseq.encoding import generate_session_dir
from skelseq.results import ErrorCode, Result
from skelseq.storage_backend import check_session_name

logger = logging.getLogger(__name__)
router = APIRouter(tags=["sequences"])


@router.post("/api/sequences", response_model=ResultResponse)
async def add_sequence_endpoint(payload: AddSequencePayload, st: AppState = Depends(get_state)):
	"""Validate, normalize and append one sequence. Body mirrors add_sequence's arguments."""
	options = payload.options.to_options() if payload.options is not None else None
	result = await st.tagger.add_sequence(
		payload.session,
		payload.sequence,
		payload.poses,
		payload.tag,
		payload.frame,
		options,
	)
	return result_response(result)


@router.get("/api/sessions", response_model=ResultResponse)
async def list_sessions_endpoint(st: AppState = Depends(get_state)):
	"""List session directories with their metadata."""
	return result_response(await st.backend.list_sessions())


@router.get("/api/sessions/{session}/metadata", response_model=ResultResponse)
async def session_metadata_endpoint(session: str, st: AppState = Depends(get_state)):
	"""Session metadata; a session with no data yet gets a fresh object (exists=false)."""
	return result_response(await st.backend.load_session_metadata(generate_session_dir(session, st.data_path)))


@router.get("/api/sessions/{session}/sequences", response_model=ResultResponse)
async def session_sequences_endpoint(session: str, st: AppState = Depends(get_state)):
	"""Every entry of a session, in append order."""
	return result_response(await st.backend.load_session_sequences(generate_session_dir(session, st.data_path)))


@router.post("/api/sessions/{session}/rebuild", response_model=ResultResponse)
async def rebuild_metadata_endpoint(session: str, st: AppState = Depends(get_state)):
	"""Regenerate metadata.json from the session log."""
	return result_response(await st.backend.rebuild_session_metadata(generate_session_dir(session, st.data_path)))


@router.get("/api/sessions/{session}/validate", response_model=ResultResponse)
async def validate_session_endpoint(session: str):
	"""Sanitized form of a session name and whether it is usable."""
	checked = check_session_name(session)
	return result_response(Result.ok(None, valid=checked["valid"], sanitized=checked["sanitized"]))


@router.get("/api/tags", response_model=ResultResponse)
async def list_tags_endpoint(st: AppState = Depends(get_state)):
	"""All distinct tags across sessions, sorted."""
	loop = asyncio.get_running_loop()
	try:
		tags = await loop.run_in_executor(None, collect_all_tags, st.data_path)
	except OSError as e:
		logger.error("[Tags] Error collecting tags: %s", e)
		return result_response(Result.fail(str(e), ErrorCode.SESSION_LIST_ERROR))
	return result_response(Result.ok(tags, count=len(tags)))
