"""
OAuth callback router - where Google returns the end-user's browser.

Endpoints:
==========
- GET /api/oauth/callback → Finish consent, redirect the browser onward
- GET /oauth-success      → Fallback page when the tenant gave no redirectUrl
- GET /oauth-error        → Fallback page for failures

OAuth Flow:
===========
1. Tenant backend calls POST /v1/connect-url and sends the end-user there
2. End-user grants permissions on Google's consent screen
3. Google redirects to /api/oauth/callback with code + state
4. Broker consumes the state, exchanges the code, stores the tokens
5. Browser is redirected to the tenant's redirectUrl (or a page below)

The callback always answers with a redirect. Failures travel as ?error=<code>.
"""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse

from agentauth.deps import get_token_broker
from agentauth.services.token_broker import TokenBroker


logger = logging.getLogger("agentauth.routers.oauth")

router = APIRouter(tags=["oauth"])


# ---------------------------------------------------------------------------
# GET /api/oauth/callback
# ---------------------------------------------------------------------------
@router.get("/api/oauth/callback")
async def oauth_callback(
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="State token from the connect URL"),
    error: Optional[str] = Query(None, description="Error from Google (e.g. access_denied)"),
    broker: TokenBroker = Depends(get_token_broker),
):
    """
    Handle the OAuth callback from Google.

    Returns:
        307 redirect to the tenant's redirectUrl with success=true&userId=...
        or error=<code>&userId=..., or to /oauth-success or /oauth-error
    """
    outcome = await broker.complete_connect(code=code, state=state, error=error)

    if not outcome.success:
        logger.info(f"OAuth callback finished with error: {outcome.error_code}")

    return RedirectResponse(url=outcome.redirect_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


# ---------------------------------------------------------------------------
# FALLBACK PAGES
# ---------------------------------------------------------------------------

_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, sans-serif;
               display: flex; justify-content: center; align-items: center;
               height: 100vh; margin: 0; background: #f5f5f5; }}
        .card {{ background: white; padding: 40px; border-radius: 12px;
                 box-shadow: 0 2px 10px rgba(0,0,0,0.1); text-align: center; }}
        h1 {{ color: {color}; }}
    </style>
</head>
<body>
    <div class="card">
        <h1>{title}</h1>
        <p>{message}</p>
        <p>You can close this window.</p>
    </div>
</body>
</html>
"""


@router.get("/oauth-success", response_class=HTMLResponse, include_in_schema=False)
def oauth_success(user_id: Optional[str] = Query(None, alias="userId")):
    message = "Your Google account is connected."
    if user_id:
        message = f"Google account connected for {html.escape(user_id)}."
    return HTMLResponse(_PAGE.format(title="Connected", color="#4CAF50", message=message))


@router.get("/oauth-error", response_class=HTMLResponse, include_in_schema=False)
def oauth_error(error: Optional[str] = Query(None)):
    message = f"Connection failed: {html.escape(error or 'unknown_error')}"
    return HTMLResponse(
        _PAGE.format(title="Connection Failed", color="#f44336", message=message),
        status_code=status.HTTP_400_BAD_REQUEST,
    )
