"""Payment provider adapters."""

from .base import AuthorizationResult, PaymentProvider, VoidResult
from .kakao_pay import KakaoPayProvider

__all__ = ["AuthorizationResult", "PaymentProvider", "VoidResult", "KakaoPayProvider"]
