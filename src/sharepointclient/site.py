from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, cast

import httpx

from sharepointclient._httpx import DEFAULT_ACS_URL, SharePointAuth, SiteConnectionParameters
from sharepointclient.credentials import AccessToken, CredentialGate, CredentialKind, FormDigest
from sharepointclient.decorators import use_client_session
from sharepointclient.exceptions import (
    ConfigurationError,
    error_from_parse_failure,
    error_from_response,
    sharepoint_errors,
)

if TYPE_CHECKING:  # pragma: no cover
    import ssl

# Constants
ODATA_VERBOSE = "application/json;odata=verbose"

USER_AGENT_STRING = "SharePoint Client (sharepointclient)"

LOGOUT_PATH = "_layouts/SignOut.aspx"

# Legacy-style single timeout value
try:
    timeout_str = os.environ.get("SHAREPOINTCLIENT_HTTP_TIMEOUT")
    HTTPX_TIMEOUT = float(timeout_str) if timeout_str is not None else None
except (TypeError, ValueError):
    HTTPX_TIMEOUT = None

logger = logging.getLogger(__name__)


# Sentinel value for detecting unset timeout parameter
class _TimeoutUnsetType:
    def __repr__(self):
        return "_TIMEOUT_UNSET"


_TIMEOUT_UNSET = _TimeoutUnsetType()


def _get_timeout_config() -> dict:
    """Get timeout configuration from environment variables.

    Returns:
        dict: Timeout configuration dictionary with connect, read, write, and pool timeouts.
    """
    return {
        "connect": float(os.environ["SHAREPOINTCLIENT_CONNECT_TIMEOUT"])
        if "SHAREPOINTCLIENT_CONNECT_TIMEOUT" in os.environ
        else None,
        "read": float(os.environ["SHAREPOINTCLIENT_READ_TIMEOUT"])
        if "SHAREPOINTCLIENT_READ_TIMEOUT" in os.environ
        else None,
        "write": float(os.environ["SHAREPOINTCLIENT_WRITE_TIMEOUT"])
        if "SHAREPOINTCLIENT_WRITE_TIMEOUT" in os.environ
        else None,
        "pool": float(os.environ["SHAREPOINTCLIENT_POOL_TIMEOUT"])
        if "SHAREPOINTCLIENT_POOL_TIMEOUT" in os.environ
        else None,
    }


TIMEOUT_CONFIG = _get_timeout_config()


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def odata_literal(value: Any) -> str:
    """Quote a value as an OData string literal, doubling embedded quotes."""
    return "'" + str(value).replace("'", "''") + "'"


class SPSite:
    """A session with a SharePoint site.

    The site owns the credentials used by every object fetched through it and
    the httpx.Client used to talk to the SharePoint REST API.

    Initialization:
        SPSite is designed to be used as a context manager

        >>> from sharepointclient import SPSite, SPList
        >>> with SPSite(
        ...     "https://example.sharepoint.com/sites/mySite/",
        ...     client_id="52848cad-...@09g7c3b0-...",
        ...     secret="YzcZQ7N4...",
        ...     resource="00000003-0000-0ff1-ce00-000000000000/example.sharepoint.com@09g7c3b0-...",
        ... ) as site:
        ...     site.create_access_token()
        ...     lists = SPList.get_all(site)

    Parameters:
        site_url (str): The site URL.
        client_id (str, optional): The app client ID.
        secret (str, optional): The app client secret.
        resource (str, optional): The resource app-only tokens are requested for.
        acs_url (str), keyword-only: The Azure Access Control Service token endpoint.
        ssl_verify (bool | ssl.SSLContext), keyword-only: Whether to verify SSL certificates,
            or a custom SSL context. Default is True.
        timeout (float | dict | httpx.Timeout | None, optional), keyword-only: Timeout
            configuration for HTTP requests.
        transport (httpx.BaseTransport, optional), keyword-only: Transport passed to the
            httpx.Client.
    """

    def __init__(
        self,
        site_url: str,
        client_id: Optional[str] = None,
        secret: Optional[str] = None,
        resource: Optional[str] = None,
        *,
        acs_url: str = DEFAULT_ACS_URL,
        ssl_verify: bool | ssl.SSLContext = True,
        timeout: float | dict | httpx.Timeout | None | _TimeoutUnsetType = _TIMEOUT_UNSET,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        url = self._parse_site_url(site_url)

        if timeout is _TIMEOUT_UNSET:
            timeout_value: httpx.Timeout = SPSite._construct_timeout_from_env()
        elif timeout is None:
            timeout_value = httpx.Timeout(None)
        else:
            timeout_value = SPSite._construct_timeout(
                cast(float | dict | httpx.Timeout, timeout)
            )

        self.site_parameters: SiteConnectionParameters = SiteConnectionParameters(
            site_url=str(url),
            client_id=client_id,
            secret=secret,
            resource=resource,
            acs_url=acs_url,
            ssl_verify=ssl_verify,
            timeout=timeout_value,
        )
        self._url = url
        self.credentials = CredentialGate()
        self.sharepoint_auth = SharePointAuth(self.credentials)
        self.base_headers = {
            "Accept": ODATA_VERBOSE,
            "User-Agent": USER_AGENT_STRING,
        }
        self.transport = transport
        self.httpx_client: Optional[httpx.Client] = None
        self.is_closed = False

    def __repr__(self) -> str:
        return f"SPSite at {self.url}"

    def __enter__(self):
        """Context manager entry for SPSite.

        Returns:
            SPSite: The SPSite instance.
        """
        self.httpx_client = self.get_sharepoint_http_client()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """Context manager exit method.

        Closes the httpx.Client and marks the SPSite instance as closed.
        Credentials are kept, so they can still be serialized for later use.
        """
        if self.httpx_client and not self.httpx_client.is_closed:
            logger.debug("Closing SharePoint session for %s", self.url)
            self.httpx_client.close()
        self.is_closed = True

    def close(self) -> None:
        """Manually close the SPSite object.

        This should only be used when running SPSite outside a context manager.
        """
        self.__exit__(None, None, None)

    @staticmethod
    def _parse_site_url(site_url: str) -> httpx.URL:
        try:
            url = httpx.URL(site_url or "")
        except httpx.InvalidURL as e:
            raise ConfigurationError("The SharePoint Site URL is invalid", cause=e) from e
        if not url.scheme or not url.host:
            raise ConfigurationError("The SharePoint Site URL is invalid")
        return url.copy_with(path=url.path.rstrip("/") + "/")

    @staticmethod
    def _construct_timeout_from_env() -> httpx.Timeout:
        """Construct httpx.Timeout object from environment variables only.

        Returns:
            httpx.Timeout: Configured timeout object from environment variables.
                          If no environment configuration is found, returns httpx.Timeout(None).
        """
        default_timeout_config = {k: v for k, v in TIMEOUT_CONFIG.items() if v is not None}

        if not default_timeout_config and HTTPX_TIMEOUT is None:
            return httpx.Timeout(None)

        return httpx.Timeout(HTTPX_TIMEOUT, **default_timeout_config)

    @staticmethod
    def _construct_timeout(timeout: float | dict | httpx.Timeout) -> httpx.Timeout:
        """Construct httpx.Timeout object from user-provided timeout parameter.

        If timeout is a dict, any unspecified values will be replaced by the environment
        default values.

        Args:
            timeout: Timeout configuration - can be float, dict, or httpx.Timeout.

        Returns:
            httpx.Timeout: Configured timeout object.
        """
        if isinstance(timeout, httpx.Timeout):
            return timeout
        elif isinstance(timeout, dict):
            default_timeout_config = {k: v for k, v in TIMEOUT_CONFIG.items() if v is not None}
            merged_timeout = {**default_timeout_config, **timeout}
            return httpx.Timeout(HTTPX_TIMEOUT, **merged_timeout)
        else:
            return httpx.Timeout(timeout)

    @property
    def url(self) -> str:
        """The site URL, with a trailing slash."""
        return self.site_parameters.site_url

    @property
    def host(self) -> str:
        """The site host name, without scheme or port."""
        return self._url.host

    @property
    def hostname(self) -> str:
        """The site scheme and authority, e.g. ``https://example.sharepoint.com``."""
        return str(self._url.copy_with(path="/")).rstrip("/")

    @property
    def path(self) -> str:
        """The site path, e.g. ``/sites/mySite/``."""
        return self._url.path

    @property
    def config(self) -> Dict[str, Any]:
        """The app configuration used to request access tokens."""
        return {
            "acs": self.site_parameters.acs_url,
            "client_id": self.site_parameters.client_id,
            "secret": self.site_parameters.secret,
            "resource": self.site_parameters.resource,
        }

    @property
    def logout_url(self) -> str:
        return self.get_url(LOGOUT_PATH)

    def get_hostname(self, path: Optional[str] = None) -> str:
        return f"{self.hostname}/{(path or '').lstrip('/')}"

    def get_path(self, path: Optional[str] = None) -> str:
        return f"{self.path.rstrip('/')}/{(path or '').lstrip('/')}"

    def get_url(self, path: Optional[str] = None) -> str:
        return self.get_hostname(self.get_path(path))

    def get_sharepoint_http_client(self) -> httpx.Client:
        """Returns a httpx client for use in SharePoint communication.

        Creates a synchronous HTTP client configured with the bearer authentication,
        base URL, timeout, and SSL verification settings.

        Returns:
            httpx.Client: Configured HTTP client for SharePoint REST API calls.
        """
        return httpx.Client(
            timeout=self.site_parameters.timeout,
            verify=self.site_parameters.ssl_verify,
            base_url=self.url,
            auth=self.sharepoint_auth,
            headers=self.base_headers,
            transport=self.transport,
        )

    @sharepoint_errors
    @use_client_session
    def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        content: Optional[bytes | str] = None,
        data: Optional[Mapping[str, Any]] = None,
        digest: bool = False,
        authenticate: bool = True,
        process: bool = True,
    ) -> Any:
        """Send a request to SharePoint.

        Args:
            url (str): Path relative to the site URL, or an absolute URL.
            method (str): The HTTP method. Defaults to GET.
            headers (Mapping[str, str], optional): Extra request headers.
            params (Mapping[str, Any], optional): Query parameters.
            json (Any, optional): Body to send as JSON.
            content (bytes | str, optional): Raw body.
            data (Mapping[str, Any], optional): Body to send form-encoded.
            digest (bool): Attach the site's form digest as ``X-RequestDigest``.
            authenticate (bool): Attach the site's access token. Defaults to True.
            process (bool): Decode the JSON body. When False, the httpx.Response is returned.

        Returns:
            Any: The decoded JSON body (None for an empty body), or the httpx.Response.

        Raises:
            MissingCredentialError: If a required credential was never created or set.
            ExpiredCredentialError: If a required credential has expired.
            RequestError: For transport failures, error responses and unparseable bodies.
        """
        request_headers = dict(headers or {})
        if digest:
            request_headers["X-RequestDigest"] = str(self.get_form_digest())

        extra_kwargs: Dict[str, Any] = {}
        if not authenticate:
            extra_kwargs["auth"] = None

        logger.debug("%s %s", method, url)
        response = self.httpx_client.request(
            method,
            url.lstrip("/") if not url.startswith(("http://", "https://")) else url,
            headers=request_headers,
            params=params,
            json=json,
            content=content,
            data=data,
            **extra_kwargs,
        )
        return self.handle_response(response, process)

    @staticmethod
    def handle_response(response: httpx.Response, process: bool = True) -> Any:
        """Classify a response and decode its body.

        Args:
            response (httpx.Response): The response to handle.
            process (bool): Decode the JSON body. When False, the response is returned
                once its status has been checked.

        Returns:
            Any: The decoded body, None for an empty body, or the response.

        Raises:
            RequestError: For error envelopes, error statuses and unparseable bodies.
        """
        if not process:
            payload = _json_or_none(response) if response.is_error else None
            error = error_from_response(response, payload)
            if error is not None:
                raise error
            return response

        if not response.content:
            payload = None
        else:
            try:
                payload = response.json()
            except ValueError as e:
                error = error_from_response(response)
                if error is not None:
                    raise error from e
                raise error_from_parse_failure(e, response) from e

        error = error_from_response(response, payload)
        if error is not None:
            raise error
        return payload

    def create_access_token(self, context_token: Optional[str] = None) -> AccessToken:
        """Request a new access token and store it.

        Args:
            context_token (str, optional): A SharePoint context token. When given, a
                user+app token is requested; otherwise an app-only token.

        Returns:
            AccessToken: The new access token.
        """
        if context_token:
            logger.info("Requesting user access token for %s", self.url)
            return cast(
                AccessToken,
                self.credentials.create(
                    CredentialKind.ACCESS_TOKEN,
                    lambda: AccessToken.create_from_context_token(self, context_token),
                ),
            )
        logger.info("Requesting app-only access token for %s", self.url)
        return cast(
            AccessToken,
            self.credentials.create(
                CredentialKind.ACCESS_TOKEN, lambda: AccessToken.create_app_only(self)
            ),
        )

    def get_access_token(self) -> AccessToken:
        return cast(AccessToken, self.credentials.get(CredentialKind.ACCESS_TOKEN))

    def set_access_token(self, token: AccessToken) -> None:
        self.credentials.set(CredentialKind.ACCESS_TOKEN, token)

    def create_form_digest(self) -> FormDigest:
        """Request a new form digest and store it. Requires a valid access token."""
        logger.info("Requesting form digest for %s", self.url)
        return cast(
            FormDigest,
            self.credentials.create(CredentialKind.FORM_DIGEST, lambda: FormDigest.create(self)),
        )

    def get_form_digest(self) -> FormDigest:
        return cast(FormDigest, self.credentials.get(CredentialKind.FORM_DIGEST))

    def set_form_digest(self, digest: FormDigest) -> None:
        self.credentials.set(CredentialKind.FORM_DIGEST, digest)
