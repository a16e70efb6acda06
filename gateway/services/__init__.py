"""Service layer exports."""

from .admin_auth import AdminAuthenticator
from .credential_store import CredentialStore
from .job_store import JobStore
from .order_preparation import OrderPreparationService
from .order_processor import OrderJobProcessor
from .provider_registry import ProviderRegistry
from .rotation_scheduler import PeriodicTask, RotationScheduler
from .secret_rotation import SecretRotationEngine
from .token_rotation import RotationEngine
from .user_refresh_tokens import UserRefreshTokenIssuer, UserTokenVerdict

__all__ = [
    "AdminAuthenticator",
    "CredentialStore",
    "JobStore",
    "OrderJobProcessor",
    "OrderPreparationService",
    "PeriodicTask",
    "ProviderRegistry",
    "RotationEngine",
    "RotationScheduler",
    "SecretRotationEngine",
    "UserRefreshTokenIssuer",
    "UserTokenVerdict",
]
