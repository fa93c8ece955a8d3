"""Base payment provider interface.

Adapters only talk to the provider. Deciding when to authorize or void a
booking's payment is the job of ``PaymentCoordinator``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..models.booking import Booking


@dataclass
class AuthorizationResult:
    """Result of an authorization attempt."""

    success: bool
    provider: str
    transaction_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


@dataclass
class VoidResult:
    """Result of releasing a held authorization."""

    success: bool
    transaction_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


class PaymentProvider(ABC):
    """Abstract base class for payment providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier stored on authorization records."""

    @abstractmethod
    async def authorize(self, booking: Booking) -> AuthorizationResult:
        """Hold the booking's total amount.

        Args:
            booking: Booking being confirmed

        Returns:
            AuthorizationResult; ``success`` is False when the provider declined
        """

    @abstractmethod
    async def void(self, booking: Booking, transaction_id: str) -> VoidResult:
        """Release a previously authorized hold.

        Args:
            booking: Booking being cancelled or declined
            transaction_id: Provider transaction returned by ``authorize``
        """
