"""
Receipt reconciliation for submitted payments.

This is an opt-in job, separate from the client-reported lifecycle. It reads
the receipt of every ``submitted`` payment that has a transaction hash and
marks it ``complete`` or ``failed``. It does not check value or recipient.
"""
from dataclasses import dataclass
from typing import Optional

from django.db.models import QuerySet
from hexbytes import HexBytes
from loguru import logger
from web3 import HTTPProvider, Web3
from web3.exceptions import TransactionNotFound

from checkout import store
from checkout.config import CheckoutSettings
from checkout.errors import CheckoutError
from checkout.lifecycle import PaymentStatus
from checkout.models import CryptoPayment


@dataclass
class ReconcileSummary:
    checked: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    errors: int = 0


def pending_payments() -> QuerySet:
    return (
        CryptoPayment.objects
        .filter(status=PaymentStatus.SUBMITTED)
        .exclude(transaction_hash__isnull=True)
        .exclude(transaction_hash='')
        .order_by('created_at')
    )


def reconcile_submitted(
    config: CheckoutSettings,
    web3: Optional[Web3] = None,
    limit: Optional[int] = None,
) -> ReconcileSummary:
    if web3 is None:
        if not config.rpc_url:
            raise CheckoutError('CHECKOUT_RPC_URL is not configured.')
        web3 = Web3(HTTPProvider(config.rpc_url, request_kwargs={'timeout': config.http_timeout_seconds}))

    summary = ReconcileSummary()
    payments = pending_payments()
    if limit:
        payments = payments[:limit]

    for payment in payments:
        summary.checked += 1
        try:
            receipt = web3.eth.get_transaction_receipt(HexBytes(payment.transaction_hash))
        except TransactionNotFound:
            summary.pending += 1
            continue
        except Exception as exc:
            summary.errors += 1
            logger.error('receipt lookup failed for {} ({}): {}',
                         payment.transaction_id, payment.transaction_hash, exc)
            continue

        new_status = PaymentStatus.COMPLETE if receipt['status'] == 1 else PaymentStatus.FAILED
        store.update_status(payment.transaction_id, new_status)
        if new_status == PaymentStatus.COMPLETE:
            summary.completed += 1
        else:
            summary.failed += 1
        logger.info('reconciled {} tx {} -> {} (block {})', payment.transaction_id,
                    payment.transaction_hash, new_status, receipt.get('blockNumber'))

    return summary
