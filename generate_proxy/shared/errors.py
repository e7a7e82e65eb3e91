"""
Error taxonomy for the Generate Proxy.

Every failure the forwarding handler can report is a ProxyError carrying the
HTTP status, the message that goes into the ``error`` field of the JSON body
and any additional body fields or response headers.
"""

from typing import Any, Dict, Optional


class ProxyError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        **fields: Any,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}
        self.fields = fields

    def to_body(self) -> Dict[str, Any]:
        body = {"error": self.message}
        body.update({k: v for k, v in self.fields.items() if v is not None})
        return body


class ClientInputError(ProxyError):
    """The inbound request is malformed. Not retryable."""
    status_code = 400


class MethodNotAllowedError(ClientInputError):
    status_code = 405

    def __init__(self, method: str, allowed: str = "POST"):
        super().__init__(
            f"Method not allowed. Use {allowed}.",
            headers={"Allow": allowed},
            method=method,
        )


class ServerConfigurationError(ProxyError):
    status_code = 500


class UpstreamTransportError(ProxyError):
    """The upstream API could not be reached."""
    status_code = 502


class UpstreamTimeoutError(UpstreamTransportError):
    status_code = 408


class UpstreamProtocolError(ProxyError):
    """The upstream API answered with something we cannot interpret."""
    status_code = 502


class UpstreamApplicationError(ProxyError):
    """The upstream API answered with an error status; the status is propagated."""
