from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict

from skelseq.results import ErrorCode, Result
from skelseq.storage_backend import StorageBackend

logger = logging.getLogger(__name__)


class HttpBridgeStorageBackend(StorageBackend):
	"""
	Backend that forwards every operation to the process owning the filesystem
	(server.py) as POST {base_url}/invoke/{operation} with a JSON payload.
	Keeps file I/O out of sandboxed or UI-side processes.
	"""

	def __init__(self, base_url: str, timeout_seconds: float = 10.0) -> None:
		self._base = base_url.rstrip("/")
		self._timeout = float(timeout_seconds)

	def name(self) -> str:
		return "bridge"

	@property
	def base_url(self) -> str:
		return self._base

	async def invoke(self, operation: str, payload: Dict[str, Any]) -> Result:
		url = f"{self._base}/invoke/{urllib.parse.quote(operation, safe='')}"
		try:
			body = json.dumps(payload or {}).encode("utf-8")
		except (TypeError, ValueError) as e:
			return Result.fail(f"Payload is not serializable: {e}", ErrorCode.BRIDGE_ERROR)

		def _post() -> Dict[str, Any]:
			req = urllib.request.Request(
				url,
				method="POST",
				data=body,
				headers={"Content-Type": "application/json"},
			)
			try:
				with urllib.request.urlopen(req, timeout=self._timeout) as resp:
					return json.loads(resp.read().decode("utf-8"))
			except urllib.error.HTTPError as e:
				# Error statuses still carry a Result body from the server.
				raw = e.read().decode("utf-8", errors="replace")
				try:
					return json.loads(raw)
				except ValueError:
					return {"success": False, "error": f"HTTP {e.code}: {raw[:200]}", "code": ErrorCode.BRIDGE_ERROR}

		loop = asyncio.get_running_loop()
		try:
			obj = await loop.run_in_executor(None, _post)
		except (urllib.error.URLError, OSError, ValueError) as e:
			logger.warning("[Bridge] %s %s failed: %s", operation, url, e)
			return Result.fail(f"Bridge call {operation!r} failed: {e}", ErrorCode.BRIDGE_ERROR)
		return Result.from_dict(obj)
