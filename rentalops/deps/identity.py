"""Identity dependency.

The upstream auth layer authenticates the user and forwards the user id in
a trusted header. The id is opaque here: it is only recorded as the author
of job writes.
"""

from typing import Optional

from fastapi import Depends, Request

from rentalops.config import Settings, get_settings


def get_current_user_id(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """Current user id from the identity header, or None when absent."""
    value = request.headers.get(settings.user_id_header_name)
    if value is None:
        return None
    return value.strip() or None
