"""
FastAPI dependencies. Routes take `st: AppState = Depends(get_state)` to reach
the storage backend and tagger built in lifespan.
"""
from fastapi import Request

from app_state import AppState


def get_state(request: Request) -> AppState:
	"""AppState attached to app.state.state by server.lifespan."""
	return request.app.state.state
