from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import httpx

from sharepointclient.credentials import CredentialGate, CredentialKind

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Generator
    import ssl

DEFAULT_ACS_URL = "https://accounts.accesscontrol.windows.net/tokens/OAuth/2"


@dataclass(frozen=True)
class SiteConnectionParameters:
    """Parameters required to connect to a SharePoint site.

    Attributes:
        site_url (str): The site URL, always ending with a slash.
        client_id (str | None): The app client ID, used for app-only tokens.
        secret (str | None): The app client secret.
        resource (str | None): The resource the app-only token is requested for.
        acs_url (str): The Azure Access Control Service token endpoint.
        ssl_verify (bool | ssl.SSLContext): Whether to verify SSL certificates.
        timeout (httpx.Timeout): Configured timeout object for HTTP requests.
    """

    site_url: str
    client_id: Optional[str] = None
    secret: Optional[str] = field(default=None, repr=False)
    resource: Optional[str] = None
    acs_url: str = DEFAULT_ACS_URL
    ssl_verify: bool | ssl.SSLContext = True
    timeout: httpx.Timeout = field(default_factory=lambda: httpx.Timeout(None))


class SharePointAuth(httpx.Auth):
    """Attaches the site's access token as a bearer credential.

    The token is read from the site's CredentialGate on every request; a
    missing or expired token fails the request before it is sent. Requests
    that already carry an ``Authorization`` header are left untouched.
    """

    def __init__(self, gate: CredentialGate):
        self._gate = gate

    def auth_flow(self, request: httpx.Request) -> "Generator[httpx.Request, httpx.Response, None]":
        if "Authorization" not in request.headers:
            token = self._gate.get(CredentialKind.ACCESS_TOKEN)
            request.headers["Authorization"] = f"Bearer {token}"
        yield request
