"""
Explicit app state: single source of truth for the storage server's runtime.
Created in lifespan, attached to app.state.state; injected into routes via Depends(get_state).
"""
from typing import Optional

from skelseq.config import AppConfig
from skelseq.storage_backends.local_backend import LocalStorageBackend
from skelseq.tagger import SequenceTagger


class AppState:
	"""
	The server owns the filesystem, so its backend is always the local one,
	whatever storage.backend says for client processes. Every path a request
	carries must resolve under <data_path>/sessions.
	"""

	cfg: Optional[AppConfig] = None
	backend: Optional[LocalStorageBackend] = None
	tagger: Optional[SequenceTagger] = None

	def __init__(self, cfg: AppConfig) -> None:
		self.cfg = cfg
		self.backend = LocalStorageBackend(data_path=cfg.storage.data_path, restrict_to_root=True)
		self.tagger = SequenceTagger(self.backend, cfg=cfg)

	@property
	def data_path(self) -> str:
		return self.cfg.storage.data_path if self.cfg else "./data"
