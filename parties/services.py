import logging
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework.exceptions import NotFound

from common.utils import sanitize_phone_number, to_decimal
from parties.models import Party

logger = logging.getLogger("ledger.balance")


class PartyNotFound(NotFound):
    default_detail = "Party not found."


def _lock_party(party_id):
    try:
        return Party.objects.select_for_update().filter(pk=party_id).first()
    except (DjangoValidationError, ValueError):
        return None


def update_balance(party_id, amount, operation):
    """Apply ``operation`` (add, subtract or set) to the party balance under a row lock."""
    if operation not in Party.BalanceOperation.values:
        raise ValueError(f"Unsupported balance operation: {operation}")

    amount = to_decimal(amount)
    with transaction.atomic():
        party = _lock_party(party_id)
        if party is None:
            raise PartyNotFound()

        previous_balance = party.balance
        if operation == Party.BalanceOperation.ADD:
            party.balance = previous_balance + amount
        elif operation == Party.BalanceOperation.SUBTRACT:
            party.balance = previous_balance - amount
        else:
            party.balance = amount
        party.save(update_fields=["balance", "updated_at"])

    logger.info(
        "balance_updated previous=%s current=%s",
        previous_balance,
        party.balance,
        extra={"party_id": party.pk, "operation": operation, "amount": amount},
    )
    return party


def find_party(name, phone_number):
    return (
        Party.objects.filter(name=(name or "").strip(), phone_number=sanitize_phone_number(phone_number))
        .order_by("created_at")
        .first()
    )


def find_or_create_party(name, phone_number, **defaults):
    """Return ``(party, created)`` for the party keyed by name and normalized phone number."""
    party = find_party(name, phone_number)
    if party is not None:
        return party, False

    party = Party.objects.create(
        name=name,
        phone_number=phone_number,
        balance=Decimal("0"),
        address=defaults.get("address") or "",
        email=defaults.get("email") or "",
    )
    logger.info("party_created", extra={"party_id": party.pk})
    return party, True
