"""Cross-session tag collection over the session logs."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Set, Union

from skelseq.session_store import SEQUENCES_FILE

logger = logging.getLogger(__name__)


def collect_all_tags(data_path: Union[str, Path]) -> List[str]:
	"""
	Unique tags across every <data_path>/sessions/*/sequences.jsonl, stripped and
	sorted. Lines that do not parse are logged and skipped.
	"""
	sessions_root = Path(data_path) / "sessions"
	if not sessions_root.exists():
		return []

	tags: Set[str] = set()
	for session_dir in sorted(p for p in sessions_root.iterdir() if p.is_dir()):
		log_path = session_dir / SEQUENCES_FILE
		if not log_path.exists():
			continue
		with open(log_path, "r", encoding="utf-8") as fh:
			for lineno, line in enumerate(fh, start=1):
				if not line.strip():
					continue
				try:
					row = json.loads(line)
				except ValueError as e:
					logger.warning("[Tags] bad line %d in %s: %s", lineno, log_path, e)
					continue
				tag = row.get("tag") if isinstance(row, dict) else None
				if isinstance(tag, str) and tag.strip():
					tags.add(tag.strip())
	return sorted(tags)
