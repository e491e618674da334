"""
Gateway — the two remote collaborators of a checkout.

    PaymentGateway   hosted popup/redirect, one GatewayOutcome per open()
    BackendApi       transaction tokens, status polls, finalize, notifications

    from paysync import gateway as G

    request = G.GatewayRequest(
        order_id="ORD-1700000000000-042",
        gross_amount=554_445,
        item_details=(G.ItemDetail("service-website", "Website", 554_445),),
        customer_details=G.CustomerDetails("Budi", "Santoso", phone="+6281234567890"),
    )
"""

from paysync.gateway._types import (
    ItemDetail,
    CustomerDetails,
    GatewayRequest,
    TransactionToken,
    parse_amount,
    GatewayResult,
    Notification,
    OutcomeKind,
    GatewayOutcome,
    PaymentGateway,
)
from paysync.gateway._backend import (
    ProcessResult,
    BackendApi,
    HttpBackendApi,
)

__all__ = (
    # Request
    "ItemDetail",
    "CustomerDetails",
    "GatewayRequest",
    "TransactionToken",
    # Results
    "parse_amount",
    "GatewayResult",
    "Notification",
    "OutcomeKind",
    "GatewayOutcome",
    "PaymentGateway",
    # Backend
    "ProcessResult",
    "BackendApi",
    "HttpBackendApi",
)
