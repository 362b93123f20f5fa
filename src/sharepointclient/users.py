from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sharepointclient.exceptions import SharePointError
from sharepointclient.objects import SPObject
from sharepointclient.site import SPSite, odata_literal

logger = logging.getLogger(__name__)

PEOPLE_MANAGER = "_api/SP.UserProfiles.PeopleManager"


class SPUser(SPObject):
    """A SharePoint user profile.

    First and last name come from the profile property bag and may be absent.
    """

    declared_fields = (
        "account",
        "email",
        "full_name",
        "first_name",
        "last_name",
        "title",
        "picture",
        "url",
    )
    mapper = {
        "account": "AccountName",
        "email": "Email",
        "full_name": "DisplayName",
        "first_name": "UserProfileProperties.4.Value?",
        "last_name": "UserProfileProperties.6.Value?",
        "title": "Title",
        "picture": "PictureUrl",
        "url": "PersonalUrl",
    }

    def __init__(
        self, site: SPSite, payload: Any, extra: Optional[Mapping[str, str]] = None
    ) -> None:
        super().__init__(extra)
        self.site = site
        self.hydrate(payload)

    def __repr__(self) -> str:
        return f"<SPUser {self.account!r}>"

    @classmethod
    def get_current(cls, site: SPSite, extra: Optional[Mapping[str, str]] = None) -> "SPUser":
        """Get the profile of the user the access token was issued for."""
        payload = site.request(
            f"{PEOPLE_MANAGER}/GetMyProperties",
            headers={"Accept": "application/json"},
        )
        return cls(site, payload, extra)

    @classmethod
    def get_by_account(
        cls, site: SPSite, account: str, extra: Optional[Mapping[str, str]] = None
    ) -> "SPUser":
        """Get a user profile by account name, e.g. ``i:0#.f|membership|user@example.com``."""
        if not account:
            raise SharePointError("The SharePoint User Account is empty/not set")

        logger.debug("Fetching user profile for %s", account)
        payload = site.request(
            f"{PEOPLE_MANAGER}/GetPropertiesFor(accountName=@v)",
            method="POST",
            headers={"Accept": "application/json"},
            params={"@v": odata_literal(account)},
        )
        return cls(site, payload, extra)
