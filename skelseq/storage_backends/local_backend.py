from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from skelseq.results import ErrorCode, Result
from skelseq.session_store import SessionStore
from skelseq.storage_backend import (
	OP_LIST_SESSIONS,
	OP_LOAD_SESSION_METADATA,
	OP_LOAD_SESSION_SEQUENCES,
	OP_REBUILD_SESSION_METADATA,
	OP_SAVE_SEQUENCE,
	OP_VALIDATE_SESSION,
	StorageBackend,
	check_session_name,
)

logger = logging.getLogger(__name__)


class LocalStorageBackend(StorageBackend):
	"""
	Backend that owns the filesystem directly. Also used by server.py to answer
	/invoke/{operation} calls coming from HttpBridgeStorageBackend.
	"""

	def __init__(
		self,
		data_path: str = "./data",
		store: Optional[SessionStore] = None,
		restrict_to_root: bool = False,
	) -> None:
		self._data_path = str(data_path or "./data")
		self._store = store or SessionStore()
		# Paths in payloads must stay under sessions_root (set when serving untrusted callers).
		self._restrict = bool(restrict_to_root)
		self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Result]]] = {
			OP_SAVE_SEQUENCE: self._save_sequence,
			OP_LIST_SESSIONS: self._list_sessions,
			OP_LOAD_SESSION_METADATA: self._load_session_metadata,
			OP_LOAD_SESSION_SEQUENCES: self._load_session_sequences,
			OP_REBUILD_SESSION_METADATA: self._rebuild_session_metadata,
			OP_VALIDATE_SESSION: self._validate_session,
		}

	def name(self) -> str:
		return "local"

	@property
	def store(self) -> SessionStore:
		return self._store

	@property
	def sessions_root(self) -> Path:
		return Path(self._data_path) / "sessions"

	async def invoke(self, operation: str, payload: Dict[str, Any]) -> Result:
		handler = self._handlers.get(operation)
		if handler is None:
			return Result.fail(f"Unknown operation: {operation!r}", ErrorCode.UNKNOWN_OPERATION)
		return await handler(payload if isinstance(payload, dict) else {})

	def _confined(self, path: Any) -> bool:
		"""True when path is allowed: always without restriction, else only inside sessions_root."""
		if not self._restrict:
			return True
		try:
			return Path(str(path)).resolve().is_relative_to(self.sessions_root.resolve())
		except (OSError, ValueError):
			return False

	def _session_dir(self, payload: Dict[str, Any]) -> Optional[str]:
		sdir = payload.get("session_dir")
		if sdir:
			return str(sdir)
		session = payload.get("session")
		if session:
			return str(self.sessions_root / str(session))
		return None

	async def _save_sequence(self, payload: Dict[str, Any]) -> Result:
		session_path = payload.get("session_path")
		data = payload.get("data")
		if not session_path or not isinstance(data, dict):
			return Result.fail("save-sequence needs session_path and data", ErrorCode.FILE_WRITE_ERROR)
		if not self._confined(session_path):
			logger.warning("[Local] rejected session_path outside %s: %s", self.sessions_root, session_path)
			return Result.fail("session_path is outside the sessions root", ErrorCode.FILE_WRITE_ERROR)

		frame_reference = payload.get("frame_reference")
		frame_data = payload.get("frame_data")
		if frame_reference and not self._confined(frame_reference):
			logger.warning("[Local] rejected frame_reference outside %s: %s", self.sessions_root, frame_reference)
			return Result.fail("frame_reference is outside the sessions root", ErrorCode.IMAGE_SAVE_ERROR)

		saved = await self._store.append(str(session_path), data)
		if not saved.success:
			return saved

		extra: Dict[str, Any] = {}
		if "metadata_error" in saved.extra:
			extra["metadata_error"] = saved.extra["metadata_error"]

		if frame_reference and frame_data:
			frame_result = await self._store.save_frame_image(str(frame_reference), str(frame_data))
			if not frame_result.success:
				# The log entry stays; only the image is missing.
				logger.warning("[Local] frame for %s not saved: %s", data.get("id"), frame_result.error)
				extra["frame_error"] = frame_result.error
				frame_reference = None

		return Result.ok(
			{
				"sequence_id": data.get("id"),
				"session_path": str(session_path),
				"frame_reference": frame_reference,
				"timestamp": data.get("timestamp"),
			},
			**extra,
		)

	async def _list_sessions(self, payload: Dict[str, Any]) -> Result:
		data_dir = payload.get("data_dir") or str(self.sessions_root)
		if not self._confined(data_dir):
			return Result.fail("data_dir is outside the sessions root", ErrorCode.SESSION_LIST_ERROR)
		return await self._store.list_sessions(str(data_dir))

	async def _load_session_metadata(self, payload: Dict[str, Any]) -> Result:
		sdir = self._session_dir(payload)
		if sdir is None:
			return Result.fail("session_dir is required", ErrorCode.METADATA_LOAD_ERROR)
		if not self._confined(sdir):
			return Result.fail("session_dir is outside the sessions root", ErrorCode.METADATA_LOAD_ERROR)
		return await self._store.load_metadata(sdir)

	async def _load_session_sequences(self, payload: Dict[str, Any]) -> Result:
		sdir = self._session_dir(payload)
		if sdir is None:
			return Result.fail("session_dir is required", ErrorCode.SEQUENCES_LOAD_ERROR)
		if not self._confined(sdir):
			return Result.fail("session_dir is outside the sessions root", ErrorCode.SEQUENCES_LOAD_ERROR)
		return await self._store.load_sequences(sdir)

	async def _rebuild_session_metadata(self, payload: Dict[str, Any]) -> Result:
		sdir = self._session_dir(payload)
		if sdir is None:
			return Result.fail("session_dir is required", ErrorCode.METADATA_LOAD_ERROR)
		if not self._confined(sdir):
			return Result.fail("session_dir is outside the sessions root", ErrorCode.METADATA_LOAD_ERROR)
		return await self._store.rebuild_metadata(sdir)

	async def _validate_session(self, payload: Dict[str, Any]) -> Result:
		checked = check_session_name(payload.get("session"))
		return Result.ok(None, valid=checked["valid"], sanitized=checked["sanitized"])
