"""Request encoders for the Mailchimp subscribe endpoints.

Each encoder turns a subscriber and its options into an ``httpx.Request``
and decides whether the matching response means "subscribed". Building a
request never touches the network.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import httpx

from .exceptions import (
    InvalidOptionError,
    MalformedResponseError,
    RemoteError,
    RequestConstructionError,
)
from .models import EMAIL_TYPES, Credentials, Subscriber, SubscriptionOptions

API_HOST = "https://{datacenter}.api.mailchimp.com"

# Mailchimp ignores the basic auth username.
BASIC_AUTH_USERNAME = "whatever"


def dump_response(response: httpx.Response) -> str:
    """Render a response as raw HTTP text for error diagnostics.

    Args:
        response: A response whose body has been read.

    Returns:
        Status line, headers and body.
    """
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}"]
    lines.extend(f"{name}: {value}" for name, value in response.headers.multi_items())
    return "\r\n".join(lines) + "\r\n\r\n" + response.text


def _check_email_type(options: SubscriptionOptions) -> None:
    if options.email_type not in EMAIL_TYPES:
        raise InvalidOptionError(f"Invalid email_type: {options.email_type}")


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


class MembersEncoder:
    """JSON body against ``/3.0/lists/{list_id}/members``.

    Example:
        ```python
        encoder = MembersEncoder(Credentials("key-us6"))
        request = encoder.build(
            Subscriber("user@example.com", "a1b2c3", {"FNAME": "Ada"}),
            SubscriptionOptions(email_type=HTML),
        )
        ```
    """

    def __init__(self, credentials: Credentials, use_basic_auth: bool = True):
        self.credentials = credentials
        self.use_basic_auth = use_basic_auth

    def endpoint(self, list_id: str) -> str:
        base = API_HOST.format(datacenter=self.credentials.resolve_datacenter())
        return f"{base}/3.0/lists/{list_id}/members"

    def build(self, subscriber: Subscriber, options: SubscriptionOptions) -> httpx.Request:
        """Build the members POST request.

        Raises:
            InvalidOptionError: If the email type is not text or html.
            RequestConstructionError: If the body cannot be serialized.
        """
        _check_email_type(options)

        data: dict[str, Any] = {
            "email_address": subscriber.email,
            "email_type": options.email_type,
            "status": "subscribed",
            "merge_fields": dict(subscriber.merge_fields),
        }
        try:
            body = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise RequestConstructionError(f"Error encoding request body: {e}") from e

        headers = {"content-type": "application/json"}
        if self.use_basic_auth:
            token = f"{BASIC_AUTH_USERNAME}:{self.credentials.api_key}".encode()
            headers["Authorization"] = "Basic " + base64.b64encode(token).decode("ascii")

        return httpx.Request(
            "POST",
            self.endpoint(subscriber.list_id),
            headers=headers,
            content=body.encode("utf-8"),
        )

    def interpret(self, response: httpx.Response) -> None:
        """Raise unless the response is a 200."""
        if response.status_code != 200:
            raw = dump_response(response)
            raise RemoteError(
                f"Non-200 response - {raw}",
                status_code=response.status_code,
                raw_response=raw,
            )


class ListSubscribeEncoder:
    """Query string against the ``/1.3/`` ``listSubscribe`` method."""

    def __init__(self, credentials: Credentials):
        self.credentials = credentials

    def endpoint(self) -> str:
        base = API_HOST.format(datacenter=self.credentials.resolve_datacenter())
        return f"{base}/1.3/"

    def params(self, subscriber: Subscriber, options: SubscriptionOptions) -> list[tuple[str, str]]:
        """Return the query parameters, sorted by name."""
        values = {
            "output": "json",
            "method": "listSubscribe",
            "id": subscriber.list_id,
            "apikey": self.credentials.api_key,
            "email_type": options.email_type,
            "email_address": subscriber.email,
            "double_optin": _bool_param(options.double_optin),
            "update_existing": _bool_param(options.update_existing),
            "replace_interests": _bool_param(options.replace_interests),
            "send_welcome": _bool_param(options.send_welcome),
        }
        for name, value in subscriber.merge_fields.items():
            values[f"merge_vars[{name}]"] = value
        return sorted(values.items())

    def build(self, subscriber: Subscriber, options: SubscriptionOptions) -> httpx.Request:
        """Build the listSubscribe GET request.

        Raises:
            InvalidOptionError: If the email type is not text or html.
        """
        _check_email_type(options)
        return httpx.Request("GET", self.endpoint(), params=self.params(subscriber, options))

    def interpret(self, response: httpx.Response) -> None:
        """Raise unless the response is a 200 whose body is JSON ``true``."""
        raw = dump_response(response)
        if response.status_code != 200:
            raise RemoteError(
                f"Non-200 response - {raw}",
                status_code=response.status_code,
                raw_response=raw,
            )

        # Only the first JSON value counts; anything after it is ignored.
        try:
            result, _ = json.JSONDecoder().raw_decode(response.text.lstrip())
        except ValueError as e:
            raise MalformedResponseError(
                f"Error decoding JSON from response: {e} --- {raw}",
                status_code=response.status_code,
                raw_response=raw,
            ) from e

        # The API answers with a bare boolean; an error object is also a failure.
        if result is True:
            return
        raise RemoteError(
            f"Subscribe returned error: {raw}",
            status_code=response.status_code,
            raw_response=raw,
        )
