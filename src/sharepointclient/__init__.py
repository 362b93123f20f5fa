"""sharepointclient is a Python client for the SharePoint REST API.

It provides app-only and context token authentication, form digest
handling, and objects for the lists, items, folders, files and user
profiles of a SharePoint site.
"""

import importlib.metadata

from sharepointclient.credentials import (
    AccessToken,
    CredentialGate,
    CredentialKind,
    FormDigest,
)
from sharepointclient.exceptions import (
    # Base exceptions
    SharePointError,
    SharePointClientClosed,
    ConfigurationError,
    # Credential errors
    CredentialError,
    MissingCredentialError,
    ExpiredCredentialError,
    # Hydration errors
    HydrationError,
    InvalidExtraAttributeError,
    ItemNotFoundError,
    # Request errors
    RequestError,
)
from sharepointclient.files import SPFile
from sharepointclient.folders import SPFolder
from sharepointclient.hydration import HydrationMode
from sharepointclient.items import SPItem
from sharepointclient.lists import FieldType, ListTemplate, SPList
from sharepointclient.site import SPSite
from sharepointclient.users import SPUser
from sharepointclient._httpx import SharePointAuth, SiteConnectionParameters

__version__ = importlib.metadata.version("sharepointclient")
__all__ = [
    # Site session
    "SPSite",
    "SharePointAuth",
    "SiteConnectionParameters",
    # Credentials
    "AccessToken",
    "FormDigest",
    "CredentialGate",
    "CredentialKind",
    # SharePoint objects
    "SPList",
    "SPItem",
    "SPFolder",
    "SPFile",
    "SPUser",
    "ListTemplate",
    "FieldType",
    "HydrationMode",
    # Base exceptions
    "SharePointError",
    "SharePointClientClosed",
    "ConfigurationError",
    # Credential errors
    "CredentialError",
    "MissingCredentialError",
    "ExpiredCredentialError",
    # Hydration errors
    "HydrationError",
    "InvalidExtraAttributeError",
    "ItemNotFoundError",
    # Request errors
    "RequestError",
]
