from collections import defaultdict
from decimal import Decimal

from django.db.models import Count, Sum

from parties.models import Party
from parties.serializers import PartySerializer
from sales.models import Payment, Purchase, Sale
from sales.serializers import PaymentSerializer, PurchaseSerializer, SaleSerializer


def filter_created_between(qs, start, end):
    if start is not None:
        qs = qs.filter(created_at__gte=start)
    if end is not None:
        qs = qs.filter(created_at__lte=end)
    return qs


def party_transactions(party):
    """Sales, purchases and payments linked to ``party``, newest first."""
    sales = Sale.objects.filter(party=party).select_related("party").prefetch_related("lines").order_by("-created_at")
    purchases = Purchase.objects.filter(party=party).select_related("party").prefetch_related("lines").order_by("-created_at")
    payments = Payment.objects.filter(party=party).select_related("party").order_by("-created_at")
    return {
        "party": PartySerializer(party).data,
        "sales": SaleSerializer(sales, many=True).data,
        "purchases": PurchaseSerializer(purchases, many=True).data,
        "payments": PaymentSerializer(payments, many=True).data,
    }


def payment_summary(start=None, end=None):
    qs = filter_created_between(Payment.objects.all(), start, end)
    rows = qs.values("type").annotate(total_amount=Sum("amount"), total_count=Count("id")).order_by("type")
    return [
        {
            "type": row["type"],
            "total_amount": str(row["total_amount"] or Decimal("0")),
            "total_count": row["total_count"],
        }
        for row in rows
    ]


def _totals_by_party(qs, field):
    return {
        row["party_id"]: row["total"] or Decimal("0")
        for row in qs.filter(party__isnull=False).values("party_id").annotate(total=Sum(field)).order_by()
    }


def expected_party_balances():
    """Recompute each party's balance from its linked transactions.

    Sales add, purchases subtract, payments in subtract and payments out add.
    Yields ``(party, expected_balance)`` for every party.
    """
    sales = _totals_by_party(Sale.objects.all(), "total_amount")
    purchases = _totals_by_party(Purchase.objects.all(), "total_amount")
    payments_in = _totals_by_party(Payment.objects.filter(type=Payment.Type.PAYMENT_IN), "amount")
    payments_out = _totals_by_party(Payment.objects.filter(type=Payment.Type.PAYMENT_OUT), "amount")

    expected = defaultdict(lambda: Decimal("0"))
    for party_id, total in sales.items():
        expected[party_id] += total
    for party_id, total in purchases.items():
        expected[party_id] -= total
    for party_id, total in payments_in.items():
        expected[party_id] -= total
    for party_id, total in payments_out.items():
        expected[party_id] += total

    for party in Party.objects.order_by("name", "created_at"):
        yield party, expected[party.pk]
