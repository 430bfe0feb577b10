"""FastAPI dependencies for request identity."""

from rentalops.deps.identity import get_current_user_id

__all__ = ["get_current_user_id"]
