"""Slack OAuth redirect endpoint."""

import time
import urllib.parse

from fastapi import APIRouter
from fastapi.responses import RedirectResponse
from structlog import get_logger

from threadly.api.dependencies import SettingsDep


logger = get_logger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/callback")
async def oauth_callback(
    settings: SettingsDep,
    code: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Forward Slack's OAuth redirect to the dashboard.

    The code is not exchanged here; the dashboard posts it back together
    with the signed-in user's id. ``_ts`` defeats browser caching of the
    redirect.
    """
    params: dict[str, str] = {}
    if code:
        params["code"] = code
        params["_ts"] = str(int(time.time() * 1000))
    if error:
        params["error"] = error

    logger.info("oauth_callback_received", has_code=bool(code), error=error)

    target = f"{settings.slack.frontend_url.rstrip('/')}/oauth-callback"
    if params:
        target = f"{target}?{urllib.parse.urlencode(params)}"
    return RedirectResponse(target, status_code=302)
