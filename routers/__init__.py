"""HTTP routers for the storage server."""
