"""chimpsub - Subscribe addresses to Mailchimp lists."""

from .client import ListClient
from .encoders import ListSubscribeEncoder, MembersEncoder, dump_response
from .models import HTML, TEXT, Credentials, Subscriber, SubscriptionOptions
from .retry import CancellationToken, RetryPolicy, retry_call
from .exceptions import (
    ChimpSubError,
    InvalidOptionError,
    RequestConstructionError,
    SubscriptionCancelledError,
    RetryableError,
    TransportError,
    RemoteError,
    MalformedResponseError,
)

__version__ = "0.1.0"
__all__ = [
    "ListClient",
    "MembersEncoder",
    "ListSubscribeEncoder",
    "dump_response",
    "Subscriber",
    "SubscriptionOptions",
    "Credentials",
    "TEXT",
    "HTML",
    "RetryPolicy",
    "CancellationToken",
    "retry_call",
    "ChimpSubError",
    "InvalidOptionError",
    "RequestConstructionError",
    "SubscriptionCancelledError",
    "RetryableError",
    "TransportError",
    "RemoteError",
    "MalformedResponseError",
]
