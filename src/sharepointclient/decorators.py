"""This module contains decorators for the sharepointclient package."""

from functools import wraps

from sharepointclient.exceptions import SharePointClientClosed


def use_client_session(func):
    """
    Decorator to use or create an httpx.Client session for the SPSite
    if one is not already created or the existing httpx.Client is closed

    This decorator assumes it is decorating an instance method on an SPSite object
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if self.is_closed:
            raise SharePointClientClosed()
        needs_temp_client = (
            not hasattr(self, "httpx_client")
            or not self.httpx_client
            or self.httpx_client.is_closed
        )
        if needs_temp_client:
            with self.get_sharepoint_http_client() as httpx_client:
                self.httpx_client = httpx_client
                try:
                    return func(self, *args, **kwargs)
                finally:
                    self.httpx_client = None
        return func(self, *args, **kwargs)

    return wrapper
