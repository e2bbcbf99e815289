"""Mailchimp list subscribe client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .encoders import ListSubscribeEncoder, MembersEncoder
from .exceptions import InvalidOptionError, MalformedResponseError, TransportError
from .models import Credentials, Subscriber, SubscriptionOptions
from .retry import CancellationToken, RetryPolicy, retry_call

logger = logging.getLogger(__name__)

API_VERSIONS = ("3.0", "1.3")

USER_AGENT = "chimpsub-python/0.1.0"


class ListClient:
    """Client subscribing addresses to one Mailchimp list.

    Mailchimp has proven mildly flaky, so ``subscribe`` retries with
    exponential backoff. ``subscribe_once`` makes a single attempt.

    Example:
        ```python
        from chimpsub import ListClient, SubscriptionOptions, HTML

        with ListClient(api_key="your-api-key-us6", list_id="a1b2c3") as client:
            client.subscribe(
                "user@example.com",
                merge_fields={"FNAME": "Ada"},
                options=SubscriptionOptions(email_type=HTML),
            )

        # Legacy 1.3 API, flags sent as query parameters
        legacy = ListClient(api_key="your-api-key", list_id="a1b2c3", api_version="1.3")
        legacy.subscribe(
            "user@example.com",
            options=SubscriptionOptions(double_optin=True, send_welcome=True),
        )
        ```
    """

    def __init__(
        self,
        api_key: str,
        list_id: str,
        datacenter: str | None = None,
        api_version: str = "3.0",
        use_basic_auth: bool = True,
        timeout: float | None = 30.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Your Mailchimp API key.
            list_id: ID of the list to subscribe to.
            datacenter: Datacenter of the API host, e.g. ``us6``. Resolved
                from the API key suffix when omitted.
            api_version: ``3.0`` (JSON members endpoint) or ``1.3``
                (``listSubscribe`` query string).
            use_basic_auth: Send the API key as basic auth (3.0 only).
            timeout: Request timeout in seconds, or None for no timeout.
            retry_policy: Attempt ceiling and backoff. Defaults to 5
                attempts starting at 1 second.
            transport: Optional httpx transport, mainly for tests.
        """
        if api_version not in API_VERSIONS:
            raise InvalidOptionError(f"Unsupported api_version: {api_version}")

        self.credentials = Credentials(api_key=api_key, datacenter=datacenter)
        self.list_id = list_id
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()

        if api_version == "3.0":
            self.encoder: MembersEncoder | ListSubscribeEncoder = MembersEncoder(
                self.credentials, use_basic_auth=use_basic_auth
            )
        else:
            self.encoder = ListSubscribeEncoder(self.credentials)

        self._client = httpx.Client(timeout=timeout, transport=transport)

    def subscribe(
        self,
        email: str,
        merge_fields: dict[str, str] | None = None,
        options: SubscriptionOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Subscribe an address, retrying on failure.

        Args:
            email: Address to subscribe.
            merge_fields: Per-subscriber merge fields, e.g. ``{"FNAME": "Ada"}``.
            options: Subscription options. Defaults to plain text mails.
            cancel_token: Cancels the call or bounds its total duration.

        Raises:
            InvalidOptionError: Immediately, for an unsupported email type.
            RequestConstructionError: Immediately, if the body can't be encoded.
            SubscriptionCancelledError: If ``cancel_token`` fires.
            TransportError, RemoteError, MalformedResponseError: The last
                failure once every attempt has failed.
        """
        token = cancel_token or CancellationToken()
        retry_call(
            lambda: self.subscribe_once(email, merge_fields, options, token),
            policy=self.retry_policy,
            token=token,
        )

    def subscribe_once(
        self,
        email: str,
        merge_fields: dict[str, str] | None = None,
        options: SubscriptionOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Subscribe an address with a single request.

        Args:
            email: Address to subscribe.
            merge_fields: Per-subscriber merge fields.
            options: Subscription options. Defaults to plain text mails.
            cancel_token: Bounds the request timeout by its deadline.
        """
        subscriber = Subscriber(
            email=email,
            list_id=self.list_id,
            merge_fields=dict(merge_fields or {}),
        )
        request = self.encoder.build(subscriber, options or SubscriptionOptions())
        response = self._send(request, cancel_token)
        self.encoder.interpret(response)
        logger.debug("Subscribed to list %s", self.list_id)

    def _send(self, request: httpx.Request, cancel_token: CancellationToken | None) -> httpx.Response:
        """Send a request, mapping httpx failures to chimpsub errors."""
        timeout = self.timeout
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
            remaining = cancel_token.remaining()
            if remaining is not None:
                timeout = remaining if timeout is None else min(timeout, remaining)
        request.headers.setdefault("User-Agent", USER_AGENT)
        request.extensions["timeout"] = httpx.Timeout(timeout).as_dict()

        # The 1.3 API carries the key in the query string.
        logger.debug("%s %s%s", request.method, request.url.host, request.url.path)
        try:
            return self._client.send(request)
        except httpx.DecodingError as e:
            raise MalformedResponseError(f"Error decoding response body: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Error sending request: {e}") from e

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> ListClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
