"""HTTP dispatcher for hairlab."""

from hairlab.api.app import CORSHeadersMiddleware, build_app, create_app

__all__ = ["CORSHeadersMiddleware", "build_app", "create_app"]
