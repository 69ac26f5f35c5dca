"""Web layer: FastAPI application factory and routers."""
