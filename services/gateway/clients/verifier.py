"""HTTP client for the auth service's credential verification endpoint.

Every protected request pays for this call before it is forwarded, so it
runs on its own client with a short timeout. The outcome is binary for the
caller: a ``VerifiedIdentity`` or a rejection. Transport failures are folded
into the rejection unless the ``bad_gateway`` policy is configured.
"""

import logging
import time
from typing import Optional

import httpx
from pydantic import ValidationError

from core.models.identity import VerifiedIdentity
from services.gateway import prometheus
from services.gateway.errors import BadGateway
from services.gateway.schemas import VerifyResponse

logger = logging.getLogger(__name__)


class IdentityVerifier:
    """Delegates credential verification to the auth service.

    Holds no per-request state and never caches results: verifying the
    same credential twice makes two calls.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        verify_url: str,
        timeout: float = 5.0,
        failure_policy: str = "deny",
    ):
        """
        Initialize the verifier.

        Args:
            client: Shared HTTP client used for verification calls
            verify_url: Absolute URL of the verification endpoint
            timeout: Timeout in seconds for a single verification call
            failure_policy: "deny" to reject when the auth service is
                unreachable, "bad_gateway" to raise BadGateway instead
        """
        self.client = client
        self.verify_url = verify_url
        self.timeout = timeout
        self.failure_policy = failure_policy

    def _unavailable(self, reason: str) -> None:
        prometheus.record_verification("unavailable")
        logger.warning(f"Auth service unavailable during verification: {reason}")
        if self.failure_policy == "bad_gateway":
            raise BadGateway(f"verifier unavailable: {reason}")

    async def verify(self, raw_credential: Optional[str]) -> Optional[VerifiedIdentity]:
        """
        Verify a raw ``authorization`` header value with the auth service.

        Args:
            raw_credential: The caller's authorization header, untouched

        Returns:
            The verified identity, or None when the request must be rejected

        Raises:
            BadGateway: Only under the "bad_gateway" policy, when the auth
                service could not be reached
        """
        if not raw_credential or not raw_credential.strip():
            prometheus.record_verification("missing")
            return None

        start_time = time.time()
        try:
            response = await self.client.post(
                self.verify_url,
                content=b"",
                headers={"authorization": raw_credential},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            self._unavailable(f"{type(e).__name__}: {e}")
            return None
        finally:
            prometheus.record_upstream_latency("auth-verify", time.time() - start_time)

        if not response.is_success:
            logger.info(f"Verification returned status {response.status_code}")
            prometheus.record_verification("rejected")
            return None

        try:
            result = VerifyResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.warning(f"Malformed verification response: {e.error_count()} error(s)")
            prometheus.record_verification("rejected")
            return None

        if not result.verified or result.user_id in (None, "") or not result.role:
            prometheus.record_verification("rejected")
            return None

        prometheus.record_verification("verified")
        return VerifiedIdentity(user_id=str(result.user_id), role=result.role)
