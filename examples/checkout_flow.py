"""
Checkout — form to paid deposit, then a closed popup and a retry.

paysync.pricing   amounts, deposit, fee
paysync.checkout  orchestrator
paysync.store     in-memory storage
"""

from datetime import datetime, timedelta

from paysync import pricing as P
from paysync.checkout import CheckoutSession, PaymentOrchestrator
from paysync.gateway import GatewayOutcome
from paysync.store import MemoryStorage
from paysync.voucher import Voucher, VoucherType
from examples._infra import BUDI, DemoBackend, DemoGateway, banner, run, settled, show


def summary(s: CheckoutSession) -> str:
    return f"{s.order_id} {s.state.value} charge={s.charge:,}"


async def main() -> None:
    banner("Pricing")

    plain = P.calculate(P.CalculationInput(subtotal=1_000_000, discount=100_000))
    print(f"  dpp {plain.dpp:,}  ppn {plain.ppn:,}  total {plain.grand_total:,}")
    print(f"  deposit {plain.deposit:,}  remaining {plain.remaining:,}  ({plain.status.value})")

    banner("Checkout: paid on first try")

    storage = MemoryStorage()
    backend = DemoBackend()
    checkout = PaymentOrchestrator(DemoGateway(GatewayOutcome.success(settled())), backend, storage)

    voucher = Voucher("DISC10", VoucherType.PERCENT, 10, min_spend=500_000)
    show(await checkout.submit_info(BUDI, 1_000_000, voucher), summary)
    show(await checkout.select_method("bca_va"), summary)
    print(f"  fee {checkout.session.fee:,}")

    show(await checkout.pay(), summary)
    print(f"  finalized: {len(backend.finalized)}")

    banner("Checkout: expired voucher is ignored")

    expired = Voucher("OLD", VoucherType.NOMINAL, 50_000, valid_until=datetime.now() - timedelta(days=1))
    checkout = PaymentOrchestrator(DemoGateway(GatewayOutcome.success(settled())), backend, storage)
    show(await checkout.submit_info(BUDI, 1_000_000, expired), summary)
    order = checkout.session.order
    assert order is not None
    print(f"  voucher error: {order.voucher_error.message if order.voucher_error else None}")

    banner("Checkout: closed popup, then retry")

    checkout = PaymentOrchestrator(
        DemoGateway(GatewayOutcome.closed(), GatewayOutcome.success(settled())),
        backend,
        storage,
    )
    await checkout.submit_info(BUDI, 750_000)
    await checkout.select_method("qris")

    show(await checkout.pay(), summary)
    show(await checkout.retry(), summary)
    show(await checkout.pay(), summary)
    print(f"  attempts: {checkout.session.attempts}")

    for event in checkout.events:
        print(f"    {event.event.value}")


if __name__ == "__main__":
    run(main)
