"""Options accepted by add_sequence, with camelCase aliases for JS-side callers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from skelseq.config import AppConfig, get_config

OPTION_ALIASES: Dict[str, str] = {
	"saveFrame": "save_frame",
	"normalizeScale": "normalize_scale",
	"includeMetadata": "include_metadata",
	"dataPath": "data_path",
	"confidenceThreshold": "confidence_threshold",
}


def canonical_options(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
	"""Map alias keys onto their snake_case names. Unknown keys are kept as-is."""
	if not raw:
		return {}
	out: Dict[str, Any] = {}
	for k, v in raw.items():
		out[OPTION_ALIASES.get(k, k)] = v
	return out


@dataclass(frozen=True)
class SequenceOptions:
	save_frame: bool = False
	normalize_scale: bool = False
	include_metadata: bool = True
	data_path: str = "./data"
	confidence_threshold: float = 0.3

	@classmethod
	def from_mapping(cls, raw: Optional[Mapping[str, Any]], cfg: Optional[AppConfig] = None) -> "SequenceOptions":
		"""
		Merge caller options over configured defaults. Expects input that already
		passed validate_options; only None values fall back to the defaults.
		"""
		cfg = cfg or get_config()
		opts = canonical_options(raw)

		def _pick(key: str, default: Any) -> Any:
			v = opts.get(key)
			return default if v is None else v

		return cls(
			save_frame=bool(_pick("save_frame", False)),
			normalize_scale=bool(_pick("normalize_scale", False)),
			include_metadata=bool(_pick("include_metadata", True)),
			data_path=str(_pick("data_path", cfg.storage.data_path)),
			confidence_threshold=float(_pick("confidence_threshold", cfg.normalization.confidence_threshold)),
		)
