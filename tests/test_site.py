"""Tests for SPSite, its session handling and response classification."""

from unittest.mock import patch

import httpx
import pytest

from sharepointclient import SPSite
from sharepointclient.exceptions import (
    ConfigurationError,
    ExpiredCredentialError,
    MissingCredentialError,
    RequestError,
    SharePointClientClosed,
)
from sharepointclient.credentials import CredentialKind, FormDigest
from sharepointclient.site import odata_literal

from .test_utils import SITE_URL, MockSharePoint, an_hour_ago, authorize_site


def make_response(status_code=200, **kwargs):
    request = httpx.Request("GET", SITE_URL + "_api/web")
    return httpx.Response(status_code, request=request, **kwargs)


class TestSiteUrls:
    def setup_method(self):
        self.site = SPSite("https://example.sharepoint.com/sites/mySite")

    def test_trailing_slash_is_added(self):
        assert self.site.url == SITE_URL

    def test_host_and_path(self):
        assert self.site.host == "example.sharepoint.com"
        assert self.site.hostname == "https://example.sharepoint.com"
        assert self.site.path == "/sites/mySite/"

    def test_get_hostname(self):
        assert self.site.get_hostname() == "https://example.sharepoint.com/"
        assert self.site.get_hostname("/sites/mySite/Shared Documents") == (
            "https://example.sharepoint.com/sites/mySite/Shared Documents"
        )

    def test_get_path(self):
        assert self.site.get_path() == "/sites/mySite/"
        assert self.site.get_path("/Lists/Tasks") == "/sites/mySite/Lists/Tasks"

    def test_get_url(self):
        assert self.site.get_url() == SITE_URL
        assert self.site.get_url("Shared Documents") == SITE_URL + "Shared Documents"

    def test_logout_url(self):
        assert self.site.logout_url == SITE_URL + "_layouts/SignOut.aspx"

    def test_config(self):
        site = SPSite(SITE_URL, "client", "secret", "resource")
        assert site.config == {
            "acs": "https://accounts.accesscontrol.windows.net/tokens/OAuth/2",
            "client_id": "client",
            "secret": "secret",
            "resource": "resource",
        }

    def test_secret_not_in_repr(self):
        site = SPSite(SITE_URL, "client", "super-secret", "resource")
        assert "super-secret" not in repr(site.site_parameters)

    @pytest.mark.parametrize("site_url", ["", "example.sharepoint.com/sites/mySite", "/sites/x"])
    def test_invalid_url(self, site_url):
        with pytest.raises(ConfigurationError) as exc_info:
            SPSite(site_url)
        assert str(exc_info.value) == "The SharePoint Site URL is invalid"


class TestOdataLiteral:
    def test_quotes(self):
        assert odata_literal("Documents") == "'Documents'"

    def test_embedded_quotes_are_doubled(self):
        assert odata_literal("John's Files") == "'John''s Files'"


class TestTimeouts:
    def test_default_is_no_timeout(self):
        site = SPSite(SITE_URL)
        assert site.site_parameters.timeout == httpx.Timeout(None)

    def test_float(self):
        site = SPSite(SITE_URL, timeout=5.0)
        assert site.site_parameters.timeout == httpx.Timeout(5.0)

    def test_explicit_none(self):
        site = SPSite(SITE_URL, timeout=None)
        assert site.site_parameters.timeout == httpx.Timeout(None)

    def test_dict_merges_with_environment(self):
        with patch.dict(
            "sharepointclient.site.TIMEOUT_CONFIG",
            {"connect": 3.0, "read": None, "write": None, "pool": None},
        ):
            site = SPSite(SITE_URL, timeout={"read": 30.0})
        assert site.site_parameters.timeout.connect == 3.0
        assert site.site_parameters.timeout.read == 30.0

    def test_environment(self):
        with patch("sharepointclient.site.HTTPX_TIMEOUT", 10.0):
            site = SPSite(SITE_URL)
        assert site.site_parameters.timeout == httpx.Timeout(10.0)


class TestRequest:
    def setup_method(self):
        self.sharepoint = MockSharePoint()
        self.sharepoint.add("GET", "/_api/web", json={"d": {"Title": "My Site"}})
        self.sharepoint.add("POST", "/_api/web", status_code=204)

    def test_bearer_token(self):
        site = self.sharepoint.site()

        assert site.request("_api/web") == {"d": {"Title": "My Site"}}

        request = self.sharepoint.last_request
        assert str(request.url) == SITE_URL + "_api/web"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Accept"] == "application/json;odata=verbose"
        assert "X-RequestDigest" not in request.headers

    def test_leading_slash_stays_below_site(self):
        site = self.sharepoint.site()
        site.request("/_api/web")
        assert str(self.sharepoint.last_request.url) == SITE_URL + "_api/web"

    def test_form_digest(self):
        site = self.sharepoint.site()

        assert site.request("_api/web", method="POST", digest=True) is None

        assert self.sharepoint.last_request.headers["X-RequestDigest"] == "test-digest"

    def test_missing_access_token(self):
        site = self.sharepoint.site(authorize=False)
        with pytest.raises(MissingCredentialError):
            site.request("_api/web")
        assert self.sharepoint.requests == []

    def test_expired_form_digest(self):
        site = self.sharepoint.site()
        site.credentials.create(CredentialKind.FORM_DIGEST, lambda: FormDigest("old", an_hour_ago()))
        with pytest.raises(ExpiredCredentialError):
            site.request("_api/web", method="POST", digest=True)

    def test_unprocessed_response(self):
        site = self.sharepoint.site()
        response = site.request("_api/web", process=False)
        assert isinstance(response, httpx.Response)
        assert response.status_code == 200

    def test_error_envelope(self):
        self.sharepoint.add(
            "GET",
            "/_api/web/Lists/GetByTitle('Nope')",
            status_code=404,
            json={"error": {"code": "-2130575322", "message": {"value": "List 'Nope' does not exist"}}},
        )
        site = self.sharepoint.site()

        with pytest.raises(RequestError) as exc_info:
            site.request("_api/web/Lists/GetByTitle('Nope')")
        assert exc_info.value.message == "List 'Nope' does not exist"
        assert exc_info.value.code == 404

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("cURL error 35: SSL connect error", request=request)

        site = authorize_site(SPSite(SITE_URL, transport=httpx.MockTransport(handler)))
        with pytest.raises(RequestError) as exc_info:
            site.request("_api/web")
        assert exc_info.value.code == 35
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestSession:
    def test_context_manager_keeps_one_client(self):
        sharepoint = MockSharePoint()
        sharepoint.add("GET", "/_api/web", json={"d": {}})
        with sharepoint.site() as site:
            client = site.httpx_client
            site.request("_api/web")
            site.request("_api/web")
            assert site.httpx_client is client
        assert client.is_closed
        assert site.is_closed

    def test_temporary_client_outside_context_manager(self):
        sharepoint = MockSharePoint()
        sharepoint.add("GET", "/_api/web", json={"d": {}})
        site = sharepoint.site()
        site.request("_api/web")
        assert site.httpx_client is None

    def test_closed_site(self):
        site = MockSharePoint().site()
        site.close()
        with pytest.raises(SharePointClientClosed):
            site.request("_api/web")

    def test_credentials_survive_close(self):
        site = MockSharePoint().site()
        site.close()
        assert site.get_access_token().secret == "test-token"


class TestHandleResponse:
    def test_json(self):
        assert SPSite.handle_response(make_response(json={"d": {"Id": 1}})) == {"d": {"Id": 1}}

    def test_empty_body(self):
        assert SPSite.handle_response(make_response(204)) is None

    def test_unparseable_body(self):
        with pytest.raises(RequestError) as exc_info:
            SPSite.handle_response(make_response(200, text="<html>"))
        assert exc_info.value.message == "The JSON data could not be parsed"
        assert isinstance(exc_info.value.cause, ValueError)

    def test_unparseable_error_body(self):
        with pytest.raises(RequestError) as exc_info:
            SPSite.handle_response(make_response(503, text="Service Unavailable"))
        assert exc_info.value.message == "Service Unavailable"
        assert exc_info.value.code == 503

    def test_error_envelope_on_success_status(self):
        payload = {"error": {"code": "-2130575338, Microsoft.SharePoint.SPException"}}
        response = make_response(200, json=payload)
        with pytest.raises(RequestError) as exc_info:
            SPSite.handle_response(response)
        assert exc_info.value.code == 200

    def test_unprocessed_error(self):
        response = make_response(403, json={"error_description": "Access denied"})
        with pytest.raises(RequestError) as exc_info:
            SPSite.handle_response(response, process=False)
        assert exc_info.value.message == "Access denied"

    def test_unprocessed_binary(self):
        response = make_response(200, content=b"\x89PNG")
        assert SPSite.handle_response(response, process=False) is response
