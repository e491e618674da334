"""
Webhook — pending popup settled later by notification, a deny that
arrives after pending, and the ledger over both.

paysync.webhook   reconciler
paysync.ledger    history and statistics
"""

from kungfu import Ok, Error

from paysync import logs
from paysync.checkout import PaymentOrchestrator
from paysync.gateway import GatewayOutcome
from paysync.ledger import TransactionLedger
from paysync.store import MemoryStorage
from paysync.webhook import HexSignatureVerifier, NotificationReconciler
from examples._infra import BUDI, DemoBackend, DemoGateway, banner, notification, run, settled


async def checkout_pending(storage: MemoryStorage, backend: DemoBackend) -> str:
    checkout = PaymentOrchestrator(
        DemoGateway(GatewayOutcome.pending(settled("pending"))), backend, storage
    )
    await checkout.submit_info(BUDI, 1_000_000)
    await checkout.select_method("bca_va")
    await checkout.pay()
    order_id = checkout.session.order_id
    assert order_id is not None
    print(f"  {order_id}: {checkout.session.state.value}")
    return order_id


async def main() -> None:
    logs.configure()
    storage = MemoryStorage()
    backend = DemoBackend()
    reconciler = NotificationReconciler(HexSignatureVerifier(), storage)

    banner("Pending, then settlement webhook")

    paid = await checkout_pending(storage, backend)
    outcome = await reconciler.process(notification(paid, "settlement", 559_000))
    print(f"  {'✓' if outcome.success else '✗'} {outcome.message}")

    # Late pending must not undo the settlement
    await reconciler.process(notification(paid, "pending", 559_000))

    banner("Pending, then deny")

    denied = await checkout_pending(storage, backend)
    outcome = await reconciler.process(notification(denied, "deny", 559_000))
    print(f"  {'✓' if outcome.success else '✗'} {outcome.message}")

    for order_id in (paid, denied):
        match await storage.get_order(order_id):
            case Ok(order) if order is not None:
                print(f"  {order_id}: {order.payment_status.value} / {order.status.value}")
            case _:
                print(f"  ✗ {order_id} not found")

    banner("Ledger")

    ledger = TransactionLedger(storage)
    match await ledger.statistics():
        case Ok(stats):
            print(f"  {stats.to_dict()}")
        case Error(err):
            print(f"  ✗ {err.message}")


if __name__ == "__main__":
    run(main)
