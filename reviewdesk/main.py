from reviewdesk.api.main import app

__all__ = ["app"]
