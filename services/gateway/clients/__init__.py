"""HTTP clients for the auth service and the proxied backends.

Re-exports the client classes so imports like
`from services.gateway.clients import Forwarder` work.
"""

from services.gateway.clients.forwarder import Forwarder
from services.gateway.clients.verifier import IdentityVerifier

__all__ = [
    "Forwarder",
    "IdentityVerifier",
]
