"""Identifier and path helpers. Pure string transforms apart from clock/random in the ID generators."""
from __future__ import annotations

import base64
import binascii
import random
import re
import time
from typing import Any, Optional, Tuple

_SANITIZE_INVALID = re.compile(r"[^a-z0-9_-]")
_SANITIZE_REPEATS = re.compile(r"_+")
_DATA_URL = re.compile(r"^data:image/([a-zA-Z]*);base64,(.*)$", re.DOTALL)
_ID_PATTERN = re.compile(r"^[a-z0-9_-]+$")

RANDOM_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
SANITIZED_MAX_LEN = 50


def sanitize_string(value: Any) -> str:
	"""
	Filesystem-safe form of a free-form name: lowercase, [a-z0-9_-] only,
	no runs of '_', no leading/trailing '_', at most 50 characters.
	Anything that sanitizes to nothing becomes 'unknown', so the result is a
	fixed point: sanitize_string(sanitize_string(s)) == sanitize_string(s).
	"""
	if not isinstance(value, str) or not value:
		return "unknown"
	s = _SANITIZE_INVALID.sub("_", value.lower())
	s = _SANITIZE_REPEATS.sub("_", s).strip("_")
	s = s[:SANITIZED_MAX_LEN].strip("_")
	return s or "unknown"


def _now_ms() -> int:
	return int(time.time() * 1000)


def generate_random_string(length: int = 8, rng: Optional[random.Random] = None) -> str:
	r = rng or random
	return "".join(r.choice(RANDOM_ALPHABET) for _ in range(max(0, int(length))))


def generate_sequence_id(
	session: Any,
	sequence: Any,
	timestamp_ms: Optional[int] = None,
	rng: Optional[random.Random] = None,
) -> str:
	"""
	<session[:8]>_<sequence[:12]>_<epoch ms>_<4 random chars>.
	Collisions need the same truncated names, millisecond and suffix.
	"""
	ts = _now_ms() if timestamp_ms is None else int(timestamp_ms)
	session_part = sanitize_string(session)[:8]
	sequence_part = sanitize_string(sequence)[:12]
	return f"{session_part}_{sequence_part}_{ts}_{generate_random_string(4, rng)}"


def _root(data_path: str) -> str:
	root = str(data_path or "./data")
	return root.rstrip("/") or "/"


def generate_session_dir(session: Any, data_path: str = "./data") -> str:
	return f"{_root(data_path)}/sessions/{sanitize_string(session)}"


def generate_session_path(session: Any, data_path: str = "./data") -> str:
	return f"{generate_session_dir(session, data_path)}/sequences.jsonl"


def generate_frame_reference(
	session: Any,
	sequence: Any,
	data_path: str = "./data",
	timestamp_ms: Optional[int] = None,
) -> str:
	ts = _now_ms() if timestamp_ms is None else int(timestamp_ms)
	return f"{generate_session_dir(session, data_path)}/frames/{sanitize_string(sequence)}_{ts}.jpg"


def parse_data_url(frame: str) -> Tuple[str, bytes]:
	"""
	Split a base64 image data URL into (image type, decoded bytes).
	Raises ValueError for anything that is not a decodable data URL.
	"""
	if not isinstance(frame, str):
		raise ValueError("Invalid image data format")
	m = _DATA_URL.match(frame)
	if not m:
		raise ValueError("Invalid image data format")
	try:
		data = base64.b64decode(m.group(2), validate=True)
	except (binascii.Error, ValueError) as e:
		raise ValueError(f"Invalid base64 image data: {e}") from e
	return m.group(1), data


def validate_id(value: Any) -> bool:
	if not isinstance(value, str):
		return False
	return bool(_ID_PATTERN.match(value)) and 3 <= len(value) <= 100
