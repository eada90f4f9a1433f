"""
Owner resolution.

Authentication itself lives outside this service. The gateway in front
of it verifies the caller and forwards the owner id in a header; this
dependency only reads it. Swap it with `app.dependency_overrides` to
plug in a different auth collaborator.
"""

from fastapi import Request

from expense_tracker.api.errors import ApiError


async def get_current_owner(request: Request) -> str:
    """Owner id for the request, or 401 if none was supplied."""
    header = request.app.state.settings.owner_header
    owner = (request.headers.get(header) or "").strip()
    if not owner:
        raise ApiError(401, "Authentication required")
    return owner
