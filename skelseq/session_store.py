"""
Session store: per-session append-only log plus a derived metadata index.

Layout under the sessions root:
  <sessions_root>/<session>/
    sequences.jsonl   one SequenceEntry per line, append-only
    metadata.json     SessionMetadata, rewritten whole on every append
    frames/           optional frame images referenced by entries

The log append is the durability point. metadata.json is a cache that can be
regenerated at any time by replaying the log (rebuild_metadata).
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from skelseq.encoding import parse_data_url
from skelseq.pose.types import SequenceEntry, SessionMetadata
from skelseq.results import ErrorCode, Result

logger = logging.getLogger(__name__)

SEQUENCES_FILE = "sequences.jsonl"
METADATA_FILE = "metadata.json"
FRAMES_DIR = "frames"

EntryLike = Union[SequenceEntry, Dict[str, Any]]


def _now_ms() -> int:
	return int(time.time() * 1000)


def _iso(ts: float) -> str:
	return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _entry_dict(entry: EntryLike) -> Dict[str, Any]:
	if isinstance(entry, SequenceEntry):
		return entry.to_dict()
	if isinstance(entry, dict):
		return entry
	raise TypeError(f"entry must be a SequenceEntry or dict, got {type(entry).__name__}")


def ensure_directory_structure(session_dir: Path) -> Path:
	"""Create <session>/ and <session>/frames/ (idempotent). Returns the frames dir."""
	session_dir.mkdir(parents=True, exist_ok=True)
	frames_dir = session_dir / FRAMES_DIR
	frames_dir.mkdir(parents=True, exist_ok=True)
	return frames_dir


def create_session_metadata(session_id: str, now_ms: Optional[int] = None) -> SessionMetadata:
	ts = _now_ms() if now_ms is None else int(now_ms)
	return SessionMetadata(session_id=str(session_id), created_at=ts, updated_at=ts)


def apply_entry_to_metadata(meta: SessionMetadata, pose_count: int, tag: str, now_ms: Optional[int] = None) -> SessionMetadata:
	"""
	Fold one appended entry into the aggregate in O(1).
	avg_sequence_length is total_frames / sequence_count, both maintained
	incrementally, so it always equals the mean a full log replay would give.
	"""
	stats = meta.statistics
	meta.updated_at = _now_ms() if now_ms is None else int(now_ms)
	meta.sequence_count += 1
	stats.total_frames += int(pose_count)
	stats.avg_sequence_length = round(stats.total_frames / meta.sequence_count, 3)
	if tag not in meta.tags:
		meta.tags.append(tag)
	stats.pose_distribution[tag] = stats.pose_distribution.get(tag, 0) + 1
	return meta


def _read_metadata_file(path: Path) -> Optional[SessionMetadata]:
	"""None when the file does not exist. Raises ValueError/OSError when unreadable."""
	if not path.exists():
		return None
	raw = json.loads(path.read_text(encoding="utf-8"))
	return SessionMetadata.from_dict(raw)


def _write_metadata_file(path: Path, meta: SessionMetadata) -> None:
	tmp = path.with_suffix(".json.tmp")
	tmp.write_text(json.dumps(meta.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
	tmp.replace(path)


def _append_line(path: Path, line: str) -> None:
	with open(path, "a", encoding="utf-8", newline="\n") as fh:
		fh.write(line)
		fh.flush()


def _read_log(path: Path, on_bad_line: Optional[Callable[[int, Exception], None]] = None) -> List[Dict[str, Any]]:
	out: List[Dict[str, Any]] = []
	with open(path, "r", encoding="utf-8") as fh:
		for lineno, line in enumerate(fh, start=1):
			if not line.strip():
				continue
			try:
				out.append(json.loads(line))
			except ValueError as e:
				if on_bad_line is None:
					raise
				on_bad_line(lineno, e)
	return out


def _replay(session_id: str, rows: List[Dict[str, Any]], now_ms: Optional[int] = None) -> SessionMetadata:
	meta = create_session_metadata(session_id, now_ms)
	for row in rows:
		if not isinstance(row, dict):
			continue
		apply_entry_to_metadata(meta, len(row.get("poses") or []), str(row.get("tag", "")), now_ms)
	return meta


class SessionStore:
	"""
	Filesystem session store. Blocking file work runs in the default executor.

	Appends to one session are serialized with a per-session asyncio.Lock, so
	metadata read-modify-write cannot lose updates inside this process. Writers
	in other processes are not coordinated; route them through a single server.
	"""

	def __init__(self) -> None:
		# key -> [lock, number of holders and waiters]; dropped when nobody uses it
		self._locks: Dict[str, List[Any]] = {}

	@asynccontextmanager
	async def _session_lock(self, session_dir: Path) -> AsyncIterator[None]:
		key = str(session_dir.absolute())
		slot = self._locks.get(key)
		if slot is None:
			slot = self._locks[key] = [asyncio.Lock(), 0]
		slot[1] += 1
		try:
			async with slot[0]:
				yield
		finally:
			slot[1] -= 1
			if slot[1] == 0 and self._locks.get(key) is slot:
				del self._locks[key]

	@staticmethod
	async def _run(fn, *args):
		loop = asyncio.get_running_loop()
		return await loop.run_in_executor(None, fn, *args)

	async def append(self, session_path: Union[str, Path], entry: EntryLike) -> Result:
		"""
		Append one entry to <session>/sequences.jsonl and update metadata.json.

		FILE_WRITE_ERROR means the entry was not durably recorded. A metadata
		failure after a successful append still returns success, with
		metadata_error set; the log stays authoritative.
		"""
		log_path = Path(session_path)
		session_dir = log_path.parent
		try:
			data = _entry_dict(entry)
			line = json.dumps(data, ensure_ascii=False, separators=(",", ":")) + "\n"
		except (TypeError, ValueError) as e:
			return Result.fail(f"Entry is not serializable: {e}", ErrorCode.FILE_WRITE_ERROR)

		async with self._session_lock(session_dir):
			try:
				await self._run(ensure_directory_structure, session_dir)
				await self._run(_append_line, log_path, line)
			except OSError as e:
				logger.error("[Store] append to %s failed: %s", log_path, e)
				return Result.fail(str(e), ErrorCode.FILE_WRITE_ERROR)

			try:
				meta = await self._run(self._update_metadata_sync, session_dir, data)
			except (OSError, ValueError, TypeError) as e:
				logger.warning("[Store] metadata update for %s failed (log is ahead): %s", session_dir, e)
				return Result.ok({"session_path": str(log_path), "id": data.get("id")}, metadata_error=str(e))

		logger.debug("[Store] appended %s to %s (count=%d)", data.get("id"), log_path, meta.sequence_count)
		return Result.ok({"session_path": str(log_path), "id": data.get("id"), "metadata": meta.to_dict()})

	def _update_metadata_sync(self, session_dir: Path, data: Dict[str, Any]) -> SessionMetadata:
		meta_path = session_dir / METADATA_FILE
		try:
			meta = _read_metadata_file(meta_path)
		except (OSError, ValueError) as e:
			# Unreadable cache: the log already holds this entry, so a replay is complete.
			logger.warning("[Store] %s unreadable, rebuilding from log: %s", meta_path, e)
			meta = self._rebuild_sync(session_dir, str(data.get("session", session_dir.name)))
			_write_metadata_file(meta_path, meta)
			return meta

		if meta is None:
			meta = create_session_metadata(str(data.get("session", session_dir.name)))
		apply_entry_to_metadata(meta, len(data.get("poses") or []), str(data.get("tag", "")))
		_write_metadata_file(meta_path, meta)
		return meta

	def _rebuild_sync(self, session_dir: Path, session_id: Optional[str] = None) -> SessionMetadata:
		log_path = session_dir / SEQUENCES_FILE
		rows: List[Dict[str, Any]] = []
		if log_path.exists():
			rows = _read_log(
				log_path,
				on_bad_line=lambda n, e: logger.warning("[Store] skipping bad line %d in %s: %s", n, log_path, e),
			)
		first = rows[0] if rows and isinstance(rows[0], dict) else {}
		sid = session_id or (str(first["session"]) if first.get("session") else session_dir.name)
		return _replay(sid, rows)

	async def rebuild_metadata(self, session_dir: Union[str, Path]) -> Result:
		"""Regenerate metadata.json by replaying the session log."""
		sdir = Path(session_dir)
		async with self._session_lock(sdir):
			try:
				meta = await self._run(self._rebuild_sync, sdir)
				if (sdir / SEQUENCES_FILE).exists():
					await self._run(_write_metadata_file, sdir / METADATA_FILE, meta)
			except (OSError, ValueError) as e:
				logger.warning("[Store] rebuild of %s failed: %s", sdir, e)
				return Result.fail(str(e), ErrorCode.METADATA_LOAD_ERROR)
		return Result.ok(meta.to_dict())

	async def load_metadata(self, session_dir: Union[str, Path]) -> Result:
		"""
		Read metadata.json. A missing file is "no data yet": success with a
		freshly synthesized object and exists=False.
		"""
		sdir = Path(session_dir)
		try:
			meta = await self._run(_read_metadata_file, sdir / METADATA_FILE)
		except (OSError, ValueError) as e:
			return Result.fail(str(e), ErrorCode.METADATA_LOAD_ERROR)
		if meta is None:
			return Result.ok(create_session_metadata(sdir.name).to_dict(), exists=False)
		return Result.ok(meta.to_dict(), exists=True)

	async def load_sequences(self, session_dir: Union[str, Path]) -> Result:
		"""All entries of a session, in append order."""
		log_path = Path(session_dir) / SEQUENCES_FILE
		try:
			rows = await self._run(_read_log, log_path)
		except (OSError, ValueError) as e:
			return Result.fail(str(e), ErrorCode.SEQUENCES_LOAD_ERROR)
		return Result.ok(rows, count=len(rows))

	def _list_sync(self, root: Path) -> List[Dict[str, Any]]:
		if not root.exists():
			return []
		out: List[Dict[str, Any]] = []
		for p in sorted(root.iterdir()):
			if not p.is_dir():
				continue
			try:
				meta = _read_metadata_file(p / METADATA_FILE)
			except (OSError, ValueError) as e:
				logger.warning("[Store] unreadable metadata in %s: %s", p, e)
				meta = None
			st = p.stat()
			out.append(
				{
					"name": p.name,
					"path": str(p),
					"metadata": meta.to_dict() if meta is not None else None,
					"created": _iso(getattr(st, "st_birthtime", st.st_ctime)),
					"modified": _iso(st.st_mtime),
				}
			)
		return out

	async def list_sessions(self, sessions_root: Union[str, Path]) -> Result:
		"""Session directories under sessions_root with their metadata (or None)."""
		try:
			sessions = await self._run(self._list_sync, Path(sessions_root))
		except OSError as e:
			return Result.fail(str(e), ErrorCode.SESSION_LIST_ERROR)
		return Result.ok(sessions, count=len(sessions))

	async def save_frame_image(self, frame_path: Union[str, Path], frame_data: str) -> Result:
		"""
		Decode a base64 data URL and write it whole to frame_path. Independent of
		the log append: a failure here never touches sequences.jsonl.
		"""
		path = Path(frame_path)
		try:
			image_type, payload = parse_data_url(frame_data)
		except ValueError as e:
			return Result.fail(str(e), ErrorCode.IMAGE_SAVE_ERROR)

		def _write() -> None:
			path.parent.mkdir(parents=True, exist_ok=True)
			path.write_bytes(payload)

		try:
			await self._run(_write)
		except OSError as e:
			logger.warning("[Store] frame write to %s failed: %s", path, e)
			return Result.fail(str(e), ErrorCode.IMAGE_SAVE_ERROR)
		return Result.ok({"path": str(path), "type": image_type, "size": len(payload)})
