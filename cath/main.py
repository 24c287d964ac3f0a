from cath.api.main import app

__all__ = ["app"]
