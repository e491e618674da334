"""
Webhook — inbound gateway notifications, verified and reconciled.

    from paysync import webhook as W

    reconciler = W.NotificationReconciler(W.HexSignatureVerifier(), storage)
    app = W.create_app(reconciler, W.RequestGuard(settings))

    # or without HTTP
    outcome = await reconciler.process(Notification.from_payload(body))
"""

from paysync.webhook._reconciler import (
    SignatureVerifier,
    HexSignatureVerifier,
    BackendSignatureVerifier,
    transaction_from,
    NotificationReconciler,
)
from paysync.webhook._guard import (
    ORDER_ID_RE,
    MIN_AMOUNT,
    MAX_AMOUNT,
    REQUIRED_NOTIFICATION_FIELDS,
    SECURITY_HEADERS,
    Rejection,
    RateLimiter,
    RequestGuard,
    notification_errors,
)
from paysync.webhook._app import (
    NOTIFICATIONS_PATH,
    NotificationIn,
    ProcessOut,
    create_app,
)

__all__ = (
    # Reconciler
    "SignatureVerifier",
    "HexSignatureVerifier",
    "BackendSignatureVerifier",
    "transaction_from",
    "NotificationReconciler",
    # Guard
    "ORDER_ID_RE",
    "MIN_AMOUNT",
    "MAX_AMOUNT",
    "REQUIRED_NOTIFICATION_FIELDS",
    "SECURITY_HEADERS",
    "Rejection",
    "RateLimiter",
    "RequestGuard",
    "notification_errors",
    # HTTP
    "NOTIFICATIONS_PATH",
    "NotificationIn",
    "ProcessOut",
    "create_app",
)
