"""Tests for the list client."""

import json
import logging

import httpx
import pytest

from chimpsub import (
    CancellationToken,
    InvalidOptionError,
    ListClient,
    MalformedResponseError,
    RemoteError,
    RequestConstructionError,
    RetryPolicy,
    SubscriptionCancelledError,
    SubscriptionOptions,
    TransportError,
)


class FakeMailchimp:
    """Transport handler returning queued responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(handler, **kwargs):
    kwargs.setdefault("api_key", "secret-us6")
    kwargs.setdefault("list_id", "list1")
    return ListClient(transport=httpx.MockTransport(handler), **kwargs)


class TestMembersApi:
    def test_subscribe_success(self, waits):
        fake = FakeMailchimp(httpx.Response(200, json={"id": "member"}))

        with make_client(fake) as client:
            assert client.subscribe("user@example.com", {"FNAME": "Ada"}) is None

        assert len(fake.requests) == 1
        request = fake.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://us6.api.mailchimp.com/3.0/lists/list1/members"
        assert request.headers["User-Agent"] == "chimpsub-python/0.1.0"
        assert json.loads(request.content) == {
            "email_address": "user@example.com",
            "email_type": "text",
            "status": "subscribed",
            "merge_fields": {"FNAME": "Ada"},
        }
        assert waits == []

    def test_address_not_logged(self, waits, caplog):
        fake = FakeMailchimp(httpx.Response(200))
        caplog.set_level(logging.DEBUG, logger="chimpsub")

        with make_client(fake) as client:
            client.subscribe("user@example.com")

        assert "Subscribed to list list1" in caplog.text
        assert "user@example.com" not in caplog.text
        assert "secret-us6" not in caplog.text

    def test_explicit_datacenter(self, waits):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake, api_key="secret", datacenter="us12") as client:
            client.subscribe("user@example.com")

        assert fake.requests[0].url.host == "us12.api.mailchimp.com"

    def test_always_failing(self, waits):
        fake = FakeMailchimp(httpx.Response(500, text="boom"))

        with make_client(fake) as client:
            with pytest.raises(RemoteError) as exc_info:
                client.subscribe("user@example.com")

        assert len(fake.requests) == 5
        assert waits == [1.0, 2.0, 4.0, 8.0]
        assert exc_info.value.status_code == 500
        assert "boom" in exc_info.value.raw_response

    def test_succeeds_on_third_attempt(self, waits):
        fake = FakeMailchimp(
            httpx.ConnectError("connection refused"),
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200),
        )

        with make_client(fake) as client:
            client.subscribe("user@example.com")

        assert len(fake.requests) == 3
        assert waits == [1.0, 2.0]

    def test_transport_error_after_retries(self, waits):
        fake = FakeMailchimp(httpx.ReadTimeout("timed out"))

        with make_client(fake) as client:
            with pytest.raises(TransportError, match="Error sending request"):
                client.subscribe("user@example.com")

        assert len(fake.requests) == 5

    def test_invalid_email_type_makes_no_request(self, waits):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake) as client:
            with pytest.raises(InvalidOptionError):
                client.subscribe("user@example.com", options=SubscriptionOptions(email_type="mime"))

        assert fake.requests == []
        assert waits == []

    def test_subscribe_once_does_not_retry(self, waits):
        fake = FakeMailchimp(httpx.Response(500))

        with make_client(fake) as client:
            with pytest.raises(RemoteError):
                client.subscribe_once("user@example.com")

        assert len(fake.requests) == 1
        assert waits == []

    def test_unencodable_merge_field_makes_no_request(self, waits):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake) as client:
            with pytest.raises(RequestConstructionError):
                client.subscribe("user@example.com", {"FNAME": object()})

        assert fake.requests == []
        assert waits == []

    def test_corrupt_gzip_body_is_retried(self, waits):
        requests = []

        def corrupt_gzip(request):
            requests.append(request)
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(b"junk"),
            )

        with make_client(corrupt_gzip) as client:
            with pytest.raises(MalformedResponseError, match="Error decoding response body"):
                client.subscribe("user@example.com")

        assert len(requests) == 5
        assert waits == [1.0, 2.0, 4.0, 8.0]

    def test_custom_retry_policy(self, waits):
        fake = FakeMailchimp(httpx.Response(500))

        with make_client(fake, retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5)) as client:
            with pytest.raises(RemoteError):
                client.subscribe("user@example.com")

        assert len(fake.requests) == 3
        assert waits == [0.5, 1.0]


class TestListSubscribeApi:
    def test_true_body_succeeds(self, waits):
        fake = FakeMailchimp(httpx.Response(200, json=True))

        with make_client(fake, api_key="secret", api_version="1.3") as client:
            client.subscribe(
                "user@example.com",
                {"FNAME": "Ada"},
                SubscriptionOptions(email_type="html", update_existing=True),
            )

        request = fake.requests[0]
        assert request.method == "GET"
        assert request.url.host == "us2.api.mailchimp.com"
        assert request.url.params["update_existing"] == "true"
        assert request.url.params["merge_vars[FNAME]"] == "Ada"
        assert request.url.params["email_type"] == "html"

    def test_false_body_is_retried(self, waits):
        fake = FakeMailchimp(httpx.Response(200, json=False), httpx.Response(200, json=True))

        with make_client(fake, api_version="1.3") as client:
            client.subscribe("user@example.com")

        assert len(fake.requests) == 2
        assert waits == [1.0]

    def test_non_json_body_is_retried(self, waits):
        fake = FakeMailchimp(httpx.Response(200, text="<html>maintenance</html>"))

        with make_client(fake, api_version="1.3") as client:
            with pytest.raises(MalformedResponseError):
                client.subscribe("user@example.com")

        assert len(fake.requests) == 5

    def test_invalid_email_type_makes_no_request(self, waits):
        fake = FakeMailchimp(httpx.Response(200, json=True))

        with make_client(fake, api_version="1.3") as client:
            with pytest.raises(InvalidOptionError):
                client.subscribe("user@example.com", options=SubscriptionOptions(email_type=""))

        assert fake.requests == []


class TestCancellation:
    def test_expired_deadline_makes_no_request(self):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake) as client:
            with pytest.raises(SubscriptionCancelledError):
                client.subscribe("user@example.com", cancel_token=CancellationToken(timeout=0))

        assert fake.requests == []

    def test_request_timeout_bounded_by_deadline(self):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake, timeout=30.0) as client:
            client.subscribe("user@example.com", cancel_token=CancellationToken(timeout=5.0))

        assert fake.requests[0].extensions["timeout"]["read"] <= 5.0

    def test_deadline_without_client_timeout(self):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake, timeout=None) as client:
            client.subscribe("user@example.com", cancel_token=CancellationToken(timeout=5.0))

        assert 0 < fake.requests[0].extensions["timeout"]["read"] <= 5.0

    def test_no_timeout_without_deadline(self):
        fake = FakeMailchimp(httpx.Response(200))

        with make_client(fake, timeout=None) as client:
            client.subscribe("user@example.com")

        assert fake.requests[0].extensions["timeout"]["read"] is None

    def test_cancel_during_backoff(self, monkeypatch):
        fake = FakeMailchimp(httpx.Response(500))
        token = CancellationToken()

        def cancel_on_wait(self, seconds):
            token.cancel()
            return True

        monkeypatch.setattr(CancellationToken, "wait", cancel_on_wait)

        with make_client(fake) as client:
            with pytest.raises(SubscriptionCancelledError):
                client.subscribe("user@example.com", cancel_token=token)

        assert len(fake.requests) == 1


class TestClientConfig:
    def test_unsupported_api_version(self):
        with pytest.raises(InvalidOptionError, match="Unsupported api_version"):
            ListClient(api_key="secret", list_id="list1", api_version="2.0")
