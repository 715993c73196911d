"""
Client for the external snapshot verification service.

The service decides who is eligible for an allocation: it validates the
external-chain address, reports its snapshot balance and verifies signed
claim requests. The ledger never calls it; administrators use it upstream of
`add_allocation` to decide what to allocate.
"""

import logging
from collections import namedtuple
from typing import Any, Dict, List, Optional

import requests

from epix_claim.vesting.core.retry import RetryableError, with_retries

logger = logging.getLogger(__name__)

EligibilityResult = namedtuple("EligibilityResult", ["is_valid", "is_witness_format"])
EligibilityDecision = namedtuple("EligibilityDecision", ["eligible", "balance", "message"])
SnapshotClaimResult = namedtuple("SnapshotClaimResult", ["accepted", "message"])
SnapshotTotals = namedtuple("SnapshotTotals", ["total_claimed", "total_claims"])
SnapshotClaim = namedtuple("SnapshotClaim", ["raw_json", "signature"])

DEFAULT_PAGE_SIZE = 5


class SnapshotServiceError(Exception):
    """The snapshot service returned an error or an unexpected payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SnapshotClient:
    """
    HTTP client for the snapshot verification API.

    GET lookups are retried on connection errors, timeouts and 5xx responses.
    Claim submissions are never retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        max_attempts: int = 3,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the snapshot client.

        Args:
            base_url: Base URL of the snapshot API
            timeout: Request timeout in seconds
            max_attempts: Attempts per GET request
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.session = session or requests.Session()

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @with_retries()
    def _get(self, path: str, params: Optional[Dict[str, Any]] = None, expected: type = dict):
        url = f"{self.base_url}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        if response.status_code >= 500:
            raise RetryableError(f"{url} returned {response.status_code}")
        return self._parse(response, expected)

    @staticmethod
    def _parse(response, expected: type = dict):
        if response.status_code >= 400:
            message = f"Snapshot service returned {response.status_code}"
            try:
                message = response.json().get("error", message)
            except ValueError:
                pass
            raise SnapshotServiceError(message, response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise SnapshotServiceError("Snapshot service returned invalid JSON", response.status_code)
        if not isinstance(data, expected):
            raise SnapshotServiceError("Snapshot service returned an unexpected payload", response.status_code)
        return data

    def verify_address(self, address: str) -> EligibilityResult:
        """
        Validate an external-chain address.

        Args:
            address: External-chain address

        Returns:
            EligibilityResult with validity and witness (segwit) format flags
        """
        data = self._get("/verify-address", {"address": address})
        return EligibilityResult(bool(data.get("isvalid")), bool(data.get("iswitness")))

    def check_balance(self, address: str) -> int:
        """
        Look up the snapshot balance of an external-chain address.

        Returns:
            The balance in the snapshot's smallest unit
        """
        data = self._get("/check-balance", {"address": address})
        try:
            return int(data["balance"])
        except (KeyError, TypeError, ValueError):
            raise SnapshotServiceError(f"Missing or invalid balance for {address}")

    def check_eligibility(self, address: str) -> EligibilityDecision:
        """
        Decide whether an address is eligible for an allocation.

        Segwit and invalid addresses are rejected, a valid address needs a
        positive snapshot balance.
        """
        result = self.verify_address(address)

        if result.is_witness_format:
            return EligibilityDecision(False, 0, "This address cannot be a segwit address.")
        if not result.is_valid:
            return EligibilityDecision(False, 0, "This address is not valid.")

        balance = self.check_balance(address)
        if balance <= 0:
            return EligibilityDecision(
                False, 0,
                "This address does not have any balance, and a balance is required to proceed."
            )

        logger.info(f"{address} is eligible with snapshot balance {balance}")
        return EligibilityDecision(True, balance, "This address is eligible.")

    def total_claimed(self) -> SnapshotTotals:
        """
        Fetch the portal-wide snapshot claim totals.

        Returns:
            SnapshotTotals with the claimed balance (snapshot units) and the number of claims
        """
        data = self._get("/total-claimed")
        try:
            return SnapshotTotals(int(data["total_claimed"]), int(data["total_claims"]))
        except (KeyError, TypeError, ValueError):
            raise SnapshotServiceError("Missing or invalid claim totals")

    def claims(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> List[SnapshotClaim]:
        """
        Fetch one page of verified snapshot claims, newest first.

        Args:
            page: 1-based page number
            page_size: Claims per page

        Returns:
            The claims on the page; fewer than `page_size` means it is the last page
        """
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")

        data = self._get("/claims", {"page": page, "pageSize": page_size}, expected=list)
        try:
            return [SnapshotClaim(item.get("raw_json"), item["signature"]) for item in data]
        except (KeyError, AttributeError):
            raise SnapshotServiceError(f"Malformed claim entry on page {page}")

    def submit_snapshot_claim(
        self,
        external_address: str,
        epix_address: str,
        snapshot_balance: int,
        signature: str
    ) -> SnapshotClaimResult:
        """
        Submit a signed claim linking an external-chain address to an EPIX address.

        Args:
            external_address: Address holding the snapshot balance
            epix_address: EPIX address that will receive the allocation
            snapshot_balance: Balance reported by check_balance
            signature: Signature of the claim made with the external wallet

        Returns:
            SnapshotClaimResult; rejected claims carry the service's error message
        """
        payload = {
            "x42_address": external_address,
            "epix_address": epix_address,
            "snapshot_balance": snapshot_balance,
        }
        try:
            response = self.session.post(
                f"{self.base_url}/verify-snapshot",
                json=payload,
                headers={"signature": signature},
                timeout=self.timeout
            )
            self._parse(response)
        except SnapshotServiceError as e:
            logger.warning(f"Snapshot claim for {external_address} rejected: {e}")
            return SnapshotClaimResult(False, str(e))

        logger.info(f"Snapshot claim verified for {external_address} -> {epix_address}")
        return SnapshotClaimResult(True, "Snapshot verified and claimed successfully")
