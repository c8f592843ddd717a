import logging
import random
import time

from django.db import transaction
from django.db.models import Count

from parties.models import Party
from parties.services import find_or_create_party, update_balance
from sales.models import Payment

logger = logging.getLogger("ledger.payments")

MAX_PAYMENT_NO_ATTEMPTS = 10

PAYMENT_PREFIXES = {
    Payment.Type.PAYMENT_IN: "PAY-IN",
    Payment.Type.PAYMENT_OUT: "PAY-OUT",
}


def balance_operation_for(payment_type):
    if payment_type == Payment.Type.PAYMENT_IN:
        return Party.BalanceOperation.SUBTRACT
    return Party.BalanceOperation.ADD


def generate_payment_number(payment_type):
    prefix = PAYMENT_PREFIXES[payment_type]
    for _ in range(MAX_PAYMENT_NO_ATTEMPTS):
        timestamp = str(int(time.time() * 1000))[-8:]
        candidate = f"{prefix}-{timestamp}-{random.randint(0, 9999):04d}"
        if not Payment.objects.filter(payment_no=candidate).exists():
            return candidate

    fallback = f"{prefix}-{int(time.time() * 1000)}-{random.randrange(100000)}"
    logger.warning("payment_number_fallback payment_no=%s", fallback)
    return fallback


def _log_extra(payment, **extra):
    return {"document": "payment", "document_id": payment.pk, "party_id": payment.party_id, **extra}


def create_payment(*, payment_type, party_name, phone_number, amount, date, total_amount=None, **fields):
    party = None
    try:
        with transaction.atomic():
            party, _ = find_or_create_party(party_name, phone_number)
    except Exception:
        logger.exception("payment_party_unresolved")

    payment = Payment.objects.create(
        payment_no=generate_payment_number(payment_type),
        type=payment_type,
        party=party,
        party_name=party_name,
        phone_number=phone_number,
        amount=amount,
        total_amount=total_amount if total_amount is not None else amount,
        date=date,
        description=fields.get("description") or "",
        payment_method=fields.get("payment_method") or Payment.Method.CASH,
        reference=fields.get("reference") or "",
    )
    logger.info("payment_created payment_no=%s", payment.payment_no, extra=_log_extra(payment, amount=payment.amount))

    if party is not None:
        operation = balance_operation_for(payment.type)
        try:
            update_balance(party.pk, payment.amount, operation)
        except Exception:
            logger.exception("compensation_failed step=balance", extra=_log_extra(payment, operation=operation))
    return payment


def update_payment(payment, **changes):
    """Apply ``changes`` to ``payment``. The payment type never changes."""
    original_amount = payment.amount
    original_party_id = payment.party_id

    for field in ("party_name", "phone_number", "date", "payment_method"):
        if changes.get(field):
            setattr(payment, field, changes[field])
    for field in ("amount", "total_amount", "description", "reference"):
        if changes.get(field) is not None:
            setattr(payment, field, changes[field])
    payment.save()

    if payment.party_id and payment.amount != original_amount:
        try:
            # the previous amount is always reversed with "add", whatever the type
            update_balance(original_party_id, original_amount, Party.BalanceOperation.ADD)
            update_balance(payment.party_id, payment.amount, balance_operation_for(payment.type))
        except Exception:
            logger.exception("compensation_failed step=balance", extra=_log_extra(payment))
    return payment


def delete_payment(payment):
    if payment.party_id:
        try:
            update_balance(payment.party_id, payment.amount, Party.BalanceOperation.ADD)
        except Exception:
            logger.exception("compensation_failed step=balance", extra=_log_extra(payment))
    payment_id = payment.pk
    payment.delete()
    logger.info("payment_deleted", extra={"document": "payment", "document_id": payment_id})


def find_duplicate_payment_groups():
    return list(
        Payment.objects.values("payment_no")
        .annotate(count=Count("id"))
        .filter(count__gt=1)
        .order_by("payment_no")
    )


def cleanup_duplicate_payments():
    """Keep the earliest payment per ``payment_no`` and delete the rest.

    Balances are not reversed for the deleted duplicates.
    """
    groups = find_duplicate_payment_groups()
    cleaned_count = 0
    for group in groups:
        ids = list(
            Payment.objects.filter(payment_no=group["payment_no"])
            .order_by("created_at", "id")
            .values_list("id", flat=True)
        )
        _, deleted_by_model = Payment.objects.filter(pk__in=ids[1:]).delete()
        cleaned_count += deleted_by_model.get(Payment._meta.label, 0)

    if cleaned_count:
        logger.warning("duplicate_payments_removed count=%s groups=%s", cleaned_count, len(groups))
    return {"cleaned_count": cleaned_count, "duplicate_groups": len(groups)}
