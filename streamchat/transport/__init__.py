"""Transports that deliver chat requests to a completion API."""

from streamchat.transport.base import StreamedBody, Transport, TransportResponse
from streamchat.transport.http import HttpTransport

__all__ = ["HttpTransport", "StreamedBody", "Transport", "TransportResponse"]
