"""Access tokens, form digests and the gate that hands them out.

Both credentials are immutable values holding a secret and an absolute,
timezone-aware expiry instant. A credential is replaced wholesale when it is
refreshed; the gate never refreshes or purges one on its own.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, Mapping, Optional, Type, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
import jwt

from sharepointclient.exceptions import (
    ConfigurationError,
    ExpiredCredentialError,
    HydrationError,
    InvalidExtraAttributeError,
    MissingCredentialError,
    SharePointError,
)
from sharepointclient.objects import SPObject

if TYPE_CHECKING:  # pragma: no cover
    from sharepointclient.site import SPSite

FORM_URLENCODED = "application/x-www-form-urlencoded"


class CredentialKind(Enum):
    ACCESS_TOKEN = "access_token"
    FORM_DIGEST = "form_digest"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class TokenResponse(SPObject):
    """Token endpoint response, as returned by ACS."""

    declared_fields = ("token", "expires")
    mapper = {
        "token": "access_token",
        "expires": "expires_on",
    }

    def __init__(self, payload: Any, extra: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(extra)
        self.hydrate(payload)


class ContextInfoResponse(SPObject):
    """``_api/contextinfo`` response."""

    declared_fields = ("digest", "expires")
    mapper = {
        "digest": "FormDigestValue",
        "expires": "FormDigestTimeoutSeconds",
    }

    def __init__(self, payload: Any, extra: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(extra)
        self.hydrate(payload)


def _zone_name(tz: Optional[tzinfo]) -> Optional[str]:
    if isinstance(tz, ZoneInfo):
        return tz.key
    if tz is timezone.utc:
        return "UTC"
    return None


def _zone(name: Optional[str]) -> tzinfo:
    if name is None or name == "UTC":
        return timezone.utc
    return ZoneInfo(name)


@dataclass(frozen=True)
class Credential:
    """A secret string valid until ``expires_at``.

    Attributes:
        secret (str): The credential value sent to SharePoint.
        expires_at (datetime): Absolute, timezone-aware expiry instant.
        extra (Mapping[str, Any]): Extra attributes mapped from the response.
            Not part of the serialized form.
    """

    kind: ClassVar[CredentialKind]

    secret: str = field(repr=False)
    expires_at: datetime
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.expires_at.tzinfo is None:
            raise ValueError("expires_at must be a timezone-aware datetime")

    def __str__(self) -> str:
        return self.secret

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Returns True once ``now`` reaches the expiry instant. There is no grace period."""
        now = now or datetime.now(tz=timezone.utc)
        return now >= self.expires_at

    def get_extra(self, name: str) -> Any:
        try:
            return self.extra[name]
        except KeyError:
            raise InvalidExtraAttributeError(name) from None

    def serialize(self) -> bytes:
        """Serialize as ``[secret, expires_epoch_seconds, timezone_name]``.

        Returns:
            bytes: UTF-8 encoded JSON array.
        """
        return json.dumps(
            [self.secret, int(self.expires_at.timestamp()), _zone_name(self.expires_at.tzinfo)]
        ).encode("utf-8")

    @classmethod
    def deserialize(cls, data: Union[bytes, str]):
        """Restore a credential serialized with ``serialize``.

        Raises:
            SharePointError: If the data is not a serialized credential.
        """
        try:
            secret, timestamp, zone_name = json.loads(data)
            if isinstance(timestamp, bool) or not isinstance(timestamp, int):
                raise TypeError(f"Expected an integer timestamp, got {timestamp!r}")
            expires_at = datetime.fromtimestamp(timestamp, tz=_zone(zone_name))
        except (TypeError, ValueError, OverflowError, OSError, ZoneInfoNotFoundError) as e:
            raise SharePointError(
                f"Unable to restore the SharePoint {cls.kind.label}", cause=e
            ) from e
        if not isinstance(secret, str):
            raise SharePointError(f"Unable to restore the SharePoint {cls.kind.label}")
        return cls(secret, expires_at)


class AccessToken(Credential):
    """OAuth access token, sent as ``Authorization: Bearer <token>``."""

    kind = CredentialKind.ACCESS_TOKEN

    @classmethod
    def from_response(
        cls, payload: Any, extra: Optional[Mapping[str, str]] = None
    ) -> "AccessToken":
        """Build an access token from a token endpoint response.

        ``expires_on`` is an epoch in seconds (a number or a string of digits).

        Raises:
            HydrationError: If the response lacks the token or a usable expiry.
        """
        response = TokenResponse(payload, extra)
        if isinstance(response.expires, datetime):
            expires_at = response.expires
        else:
            try:
                expires_at = datetime.fromtimestamp(int(response.expires), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                raise HydrationError(
                    f"Invalid access token expiry: {response.expires!r}", "expires_on"
                ) from None
        return cls(response.token, expires_at, response.extra)

    @classmethod
    def create_app_only(
        cls, site: "SPSite", extra: Optional[Mapping[str, str]] = None
    ) -> "AccessToken":
        """Request an app-only access token using the client credentials grant.

        Raises:
            ConfigurationError: If the secret, ACS URL, client ID or resource is missing
                or invalid.
            RequestError: If the token request fails.
        """
        config = site.config

        if not config.get("secret"):
            raise ConfigurationError("The Secret is empty/not set")

        if not config.get("acs"):
            raise ConfigurationError("The Azure Access Control Service URL is empty/not set")

        if not _is_http_url(config["acs"]):
            raise ConfigurationError("The Azure Access Control Service URL is invalid")

        if not config.get("client_id"):
            raise ConfigurationError("The Client ID is empty/not set")

        if not config.get("resource"):
            raise ConfigurationError("The Resource is empty/not set")

        payload = site.request(
            config["acs"],
            method="POST",
            headers={"Content-Type": FORM_URLENCODED},
            data={
                "grant_type": "client_credentials",
                "client_id": config["client_id"],
                "client_secret": config["secret"],
                "resource": config["resource"],
            },
            authenticate=False,
        )
        return cls.from_response(payload, extra)

    @classmethod
    def create_from_context_token(
        cls, site: "SPSite", context_token: str, extra: Optional[Mapping[str, str]] = None
    ) -> "AccessToken":
        """Request a user+app access token from a SharePoint context token.

        The context token is posted to the app by SharePoint when the app is
        launched. Its refresh token is exchanged at the security token service
        named in the token.

        Raises:
            ConfigurationError: If the secret is missing.
            SharePointError: If the context token cannot be decoded.
            RequestError: If the token request fails.
        """
        config = site.config

        if not config.get("secret"):
            raise ConfigurationError("The Secret is empty/not set")

        try:
            claims = jwt.decode(context_token, options={"verify_signature": False})
            app_context = json.loads(claims["appctx"])
            token_service_url = app_context["SecurityTokenServiceUri"]
            resource = claims["appctxsender"].replace("@", f"/{site.host}@")
            client_id = claims["aud"]
            refresh_token = claims["refreshtoken"]
        except (jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
            raise SharePointError("Unable to decode the Context Token", cause=e) from e

        payload = site.request(
            token_service_url,
            method="POST",
            headers={"Content-Type": FORM_URLENCODED},
            data={
                "grant_type": "refresh_token",
                "client_id": client_id,
                "client_secret": config["secret"],
                "refresh_token": refresh_token,
                "resource": resource,
            },
            authenticate=False,
        )
        return cls.from_response(payload, extra)


class FormDigest(Credential):
    """Anti-forgery token, sent as ``X-RequestDigest`` on writes."""

    kind = CredentialKind.FORM_DIGEST

    @classmethod
    def from_response(
        cls,
        payload: Any,
        extra: Optional[Mapping[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> "FormDigest":
        """Build a form digest from a ``_api/contextinfo`` response.

        ``FormDigestTimeoutSeconds`` is relative; the expiry is anchored at ``now``.
        """
        if isinstance(payload, dict) and isinstance(payload.get("d"), dict):
            payload = payload["d"].get("GetContextWebInformation", payload["d"])

        response = ContextInfoResponse(payload, extra)
        try:
            lifetime = timedelta(seconds=int(response.expires))
        except (TypeError, ValueError, OverflowError):
            raise HydrationError(
                f"Invalid form digest timeout: {response.expires!r}", "FormDigestTimeoutSeconds"
            ) from None
        now = now or datetime.now(tz=timezone.utc)
        return cls(response.digest, now + lifetime, response.extra)

    @classmethod
    def create(cls, site: "SPSite", extra: Optional[Mapping[str, str]] = None) -> "FormDigest":
        """Request a form digest for the site. Needs a valid access token."""
        payload = site.request(
            "_api/contextinfo",
            method="POST",
            headers={"Accept": "application/json"},
        )
        return cls.from_response(payload, extra)


_CREDENTIAL_TYPES: Dict[CredentialKind, Type[Credential]] = {
    CredentialKind.ACCESS_TOKEN: AccessToken,
    CredentialKind.FORM_DIGEST: FormDigest,
}


class CredentialGate:
    """Holds at most one credential of each kind for a site session.

    ``get`` never mutates, so concurrent reads are safe; ``set`` and ``create``
    must be serialized by the caller.
    """

    def __init__(self) -> None:
        self._credentials: Dict[CredentialKind, Credential] = {}

    def __contains__(self, kind: CredentialKind) -> bool:
        return kind in self._credentials

    def get(self, kind: CredentialKind) -> Credential:
        """Return the stored credential of ``kind``.

        Raises:
            MissingCredentialError: If no credential of this kind was created or set.
            ExpiredCredentialError: If the stored credential has expired.
        """
        credential = self._credentials.get(kind)
        if credential is None:
            raise MissingCredentialError(kind)
        if credential.is_expired():
            raise ExpiredCredentialError(kind)
        return credential

    def set(self, kind: CredentialKind, credential: Credential) -> None:
        """Store a credential supplied by the caller, e.g. restored from a cache.

        Raises:
            ExpiredCredentialError: If the credential has already expired.
        """
        self._check_type(kind, credential)
        if credential.is_expired():
            raise ExpiredCredentialError(kind)
        self._credentials[kind] = credential

    def create(self, kind: CredentialKind, factory: Callable[[], Credential]) -> Credential:
        """Store the credential returned by ``factory``.

        A freshly created credential is stored even if it is already expired;
        that surfaces on the next ``get``.
        """
        credential = factory()
        self._check_type(kind, credential)
        self._credentials[kind] = credential
        return credential

    @staticmethod
    def _check_type(kind: CredentialKind, credential: Credential) -> None:
        expected = _CREDENTIAL_TYPES[kind]
        if not isinstance(credential, expected):
            raise TypeError(
                f"Expected {expected.__name__} for {kind.label}, got {type(credential).__name__}"
            )


def _is_http_url(value: str) -> bool:
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)
