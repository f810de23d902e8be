"""
Storage server: the one process that owns the session files.

Clients either call /api/* directly or run SequenceTagger with an
HttpBridgeStorageBackend, which forwards storage operations to /invoke/{operation}.
"""
import argparse
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppState
from routers.invoke import router as invoke_router
from routers.sequences import router as sequences_router
from skelseq import __version__
from skelseq.config import AppConfig, get_config, set_config_path
from skelseq.storage_backend import OPERATIONS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	cfg = get_config()
	app.state.state = AppState(cfg)
	logger.info("[Server] data_path=%s", cfg.storage.data_path)
	try:
		yield
	finally:
		try:
			await app.state.state.backend.close()
		except Exception as e:
			logger.warning("[Server] backend close failed: %r", e)


def create_app(cfg: Optional[AppConfig] = None) -> FastAPI:
	cfg = cfg or get_config()
	app = FastAPI(title="skelseq", version=__version__, lifespan=lifespan)
	# /invoke writes files, so only explicitly configured origins get CORS access.
	if cfg.bridge.cors_origins:
		app.add_middleware(
			CORSMiddleware,
			allow_origins=list(cfg.bridge.cors_origins),
			allow_credentials=False,
			allow_methods=["GET", "POST"],
			allow_headers=["Content-Type"],
		)
	app.include_router(invoke_router)
	app.include_router(sequences_router)

	@app.get("/health")
	async def health():
		return {"status": "ok", "version": __version__, "operations": list(OPERATIONS)}

	return app


app = create_app()


def main(argv: Optional[list[str]] = None) -> int:
	import uvicorn

	p = argparse.ArgumentParser(description="Skeleton sequence storage server")
	p.add_argument("--config", default=None, help="Path to config.json (optional)")
	p.add_argument("--host", default=None)
	p.add_argument("--port", type=int, default=None)
	p.add_argument("--debug", action="store_true", help="Verbose logging")
	args = p.parse_args(argv)

	logging.basicConfig(
		level=logging.DEBUG if args.debug else logging.INFO,
		format="%(levelname)s:%(name)s:%(message)s",
	)
	if args.config:
		set_config_path(args.config)

	cfg = get_config()
	host = args.host or cfg.bridge.host
	port = int(args.port or cfg.bridge.port)
	try:
		uvicorn.run(create_app(cfg), host=host, port=port, log_level="debug" if args.debug else "info")
		return 0
	except KeyboardInterrupt:
		return 0


if __name__ == "__main__":
	raise SystemExit(main())
