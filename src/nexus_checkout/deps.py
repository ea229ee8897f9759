"""Dependency injection singletons for Nexus checkout."""

from nexus_checkout.audit.service import AuditService
from nexus_checkout.checkout.abacate_client import AbacatePayClient
from nexus_checkout.checkout.service import CheckoutService
from nexus_checkout.common.config import get_settings
from nexus_checkout.common.database import DatabaseManager
from nexus_checkout.notifications.email_delivery import EmailSender, build_email_sender
from nexus_checkout.provisioning.identity_client import IdentityClient
from nexus_checkout.provisioning.service import AccountProvisioner
from nexus_checkout.sessions.service import SessionStore
from nexus_checkout.tenants.service import EstablishmentService
from nexus_checkout.trials.service import TrialLockRegistry, TrialSignupService
from nexus_checkout.verification.service import VerificationService
from nexus_checkout.webhooks.service import WebhookProcessor

_UNSET = object()

_db: DatabaseManager | None = None
_store: SessionStore | None = None
_audit: AuditService | None = None
_establishments: EstablishmentService | None = None
_email_sender = _UNSET
_payment_client = _UNSET
_identity_client = _UNSET
_verification: VerificationService | None = None
_checkout: CheckoutService | None = None
_webhooks: WebhookProcessor | None = None
_provisioner: AccountProvisioner | None = None
_trials: TrialSignupService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_session_store() -> SessionStore:
    global _store
    if _store is None:
        _store = SessionStore()
    return _store


def get_audit_service() -> AuditService:
    global _audit
    if _audit is None:
        _audit = AuditService(get_settings())
    return _audit


def get_establishment_service() -> EstablishmentService:
    global _establishments
    if _establishments is None:
        _establishments = EstablishmentService()
    return _establishments


# ── External clients (None when not configured) ──

def get_email_sender() -> EmailSender | None:
    global _email_sender
    if _email_sender is _UNSET:
        _email_sender = build_email_sender(get_settings())
    return _email_sender


def get_payment_client() -> AbacatePayClient | None:
    global _payment_client
    if _payment_client is _UNSET:
        settings = get_settings()
        _payment_client = None
        if settings.abacatepay_api_key:
            _payment_client = AbacatePayClient(
                api_key=settings.abacatepay_api_key,
                base_url=settings.abacatepay_base_url,
                timeout=settings.http_timeout_seconds,
            )
    return _payment_client


def get_identity_client() -> IdentityClient | None:
    global _identity_client
    if _identity_client is _UNSET:
        settings = get_settings()
        _identity_client = None
        if settings.identity_base_url and settings.identity_service_key:
            _identity_client = IdentityClient(
                base_url=settings.identity_base_url,
                service_key=settings.identity_service_key,
                timeout=settings.http_timeout_seconds,
            )
    return _identity_client


def override_clients(
    email_sender=_UNSET, payment_client=_UNSET, identity_client=_UNSET,
) -> None:
    """Swap external clients (tests use in-process fakes); call before services are built."""
    global _email_sender, _payment_client, _identity_client
    if email_sender is not _UNSET:
        _email_sender = email_sender
    if payment_client is not _UNSET:
        _payment_client = payment_client
    if identity_client is not _UNSET:
        _identity_client = identity_client


# ── Services ──

def get_verification_service() -> VerificationService:
    global _verification
    if _verification is None:
        _verification = VerificationService(
            get_settings(), get_session_store(),
            email_sender=get_email_sender(),
            audit_service=get_audit_service(),
        )
    return _verification


def get_checkout_service() -> CheckoutService:
    global _checkout
    if _checkout is None:
        _checkout = CheckoutService(
            get_settings(), get_session_store(),
            payment_client=get_payment_client(),
            audit_service=get_audit_service(),
        )
    return _checkout


def get_webhook_processor() -> WebhookProcessor:
    global _webhooks
    if _webhooks is None:
        _webhooks = WebhookProcessor(
            get_settings(), get_session_store(),
            email_sender=get_email_sender(),
            audit_service=get_audit_service(),
        )
    return _webhooks


def get_account_provisioner() -> AccountProvisioner:
    global _provisioner
    if _provisioner is None:
        _provisioner = AccountProvisioner(
            get_settings(), get_session_store(), get_establishment_service(),
            identity_client=get_identity_client(),
            email_sender=get_email_sender(),
            audit_service=get_audit_service(),
        )
    return _provisioner


def get_trial_signup_service() -> TrialSignupService:
    global _trials
    if _trials is None:
        _trials = TrialSignupService(
            get_settings(), TrialLockRegistry(), get_establishment_service(),
            identity_client=get_identity_client(),
        )
    return _trials


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _store, _audit, _establishments
    global _email_sender, _payment_client, _identity_client
    global _verification, _checkout, _webhooks, _provisioner, _trials
    _db = None
    _store = None
    _audit = None
    _establishments = None
    _email_sender = _UNSET
    _payment_client = _UNSET
    _identity_client = _UNSET
    _verification = None
    _checkout = None
    _webhooks = None
    _provisioner = None
    _trials = None
