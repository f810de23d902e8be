"""
Skeleton sequence tagging core.

Validates and normalizes raw pose-estimation output into fixed-shape sequence
entries and appends them to per-session logs with running metadata.
"""

from pathlib import Path


def _read_version() -> str:
	try:
		vf = Path(__file__).resolve().parents[1] / "VERSION"
		if vf.exists():
			val = vf.read_text(encoding="utf-8").strip()
			if val:
				return val
	except OSError:
		pass
	return "1.0.0"


__version__ = _read_version()
