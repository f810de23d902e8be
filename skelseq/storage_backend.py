from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from skelseq.config import AppConfig, get_config
from skelseq.pose.types import SequenceEntry
from skelseq.results import Result

OP_SAVE_SEQUENCE = "save-sequence"
OP_LIST_SESSIONS = "list-sessions"
OP_LOAD_SESSION_METADATA = "load-session-metadata"
OP_LOAD_SESSION_SEQUENCES = "load-session-sequences"
OP_REBUILD_SESSION_METADATA = "rebuild-session-metadata"
OP_VALIDATE_SESSION = "validate-session"

OPERATIONS = (
	OP_SAVE_SEQUENCE,
	OP_LIST_SESSIONS,
	OP_LOAD_SESSION_METADATA,
	OP_LOAD_SESSION_SEQUENCES,
	OP_REBUILD_SESSION_METADATA,
	OP_VALIDATE_SESSION,
)

_SESSION_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def check_session_name(name: Any) -> Dict[str, Any]:
	"""Sanitize a session name for use as a directory and say whether it is usable."""
	sanitized = _SESSION_UNSAFE.sub("_", str(name or ""))
	return {"success": True, "valid": 0 < len(sanitized) <= 50, "sanitized": sanitized}


class StorageBackend(ABC):
	"""
	Whatever owns the filesystem. The core only needs invoke(operation, payload);
	the typed helpers below are thin wrappers over it.

	Chosen once by the host (get_storage_backend) and injected into SequenceTagger.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	async def invoke(self, operation: str, payload: Dict[str, Any]) -> Result: ...

	async def close(self) -> None:
		return None

	async def save_sequence(
		self,
		session_path: str,
		entry: SequenceEntry,
		frame_reference: Optional[str] = None,
		frame_data: Optional[str] = None,
	) -> Result:
		return await self.invoke(
			OP_SAVE_SEQUENCE,
			{
				"session_path": session_path,
				"data": entry.to_dict(),
				"frame_reference": frame_reference,
				"frame_data": frame_data,
			},
		)

	async def list_sessions(self, data_dir: Optional[str] = None) -> Result:
		return await self.invoke(OP_LIST_SESSIONS, {"data_dir": data_dir})

	async def load_session_metadata(self, session_dir: str) -> Result:
		return await self.invoke(OP_LOAD_SESSION_METADATA, {"session_dir": session_dir})

	async def load_session_sequences(self, session_dir: str) -> Result:
		return await self.invoke(OP_LOAD_SESSION_SEQUENCES, {"session_dir": session_dir})

	async def rebuild_session_metadata(self, session_dir: str) -> Result:
		return await self.invoke(OP_REBUILD_SESSION_METADATA, {"session_dir": session_dir})

	async def validate_session(self, session: str) -> Result:
		return await self.invoke(OP_VALIDATE_SESSION, {"session": session})


def get_storage_backend(cfg: Optional[AppConfig] = None, *, backend_override: Optional[str] = None) -> StorageBackend:
	cfg = cfg or get_config()
	backend = (backend_override or cfg.storage.backend or "local").strip().lower()
	if backend in ("bridge", "http", "remote"):
		from skelseq.storage_backends.http_bridge_backend import HttpBridgeStorageBackend

		host = cfg.bridge.host or "127.0.0.1"
		port = int(cfg.bridge.port or 18090)
		return HttpBridgeStorageBackend(f"http://{host}:{port}", timeout_seconds=float(cfg.bridge.timeout_seconds))

	# Unknown names fall back to the filesystem backend.
	from skelseq.storage_backends.local_backend import LocalStorageBackend

	return LocalStorageBackend(data_path=cfg.storage.data_path)
