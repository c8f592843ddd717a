import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound

from common.exceptions import Conflict
from common.utils import to_money
from inventory.models import StockDirection
from inventory.services import StockAdjuster, reverse_direction
from parties.models import Party
from parties.services import find_or_create_party, update_balance
from sales.models import Purchase, PurchaseLine, Sale, SaleLine

logger = logging.getLogger("ledger.transactions")

LEADING_DIGITS = re.compile(r"^\s*(\d+)")


@dataclass(frozen=True)
class LineSpec:
    """A transaction line as compared between stored and submitted versions."""

    item_id: str
    item_name: str
    quantity: Decimal
    rate: Decimal

    @property
    def total(self):
        return to_money(self.quantity * self.rate)

    @classmethod
    def from_line(cls, line):
        return cls(item_id=line.item_id, item_name=line.item_name, quantity=line.quantity, rate=line.rate)

    @classmethod
    def from_data(cls, data):
        return cls(
            item_id=str(data["item_id"]).strip(),
            item_name=data["item_name"].strip(),
            quantity=Decimal(data["quantity"]),
            rate=Decimal(data["rate"]),
        )


def reverse_balance_operation(operation):
    if operation == Party.BalanceOperation.ADD:
        return Party.BalanceOperation.SUBTRACT
    return Party.BalanceOperation.ADD


class TransactionLifecycle:
    """Create, update and delete a sale or purchase and keep balances and stock in step.

    The document write is the primary step. Balance and stock adjustments run
    afterwards as independent compensating steps: their failures are logged
    and never undo the document write.
    """

    model = None
    line_model = None
    document = None
    identifier_field = None
    balance_operation = None
    stock_direction = None
    conflict_message = "The document identifier already exists."

    def __init__(self, stock_adjuster=None):
        self._stock_adjuster = stock_adjuster

    @property
    def stock_adjuster(self):
        if self._stock_adjuster is None:
            self._stock_adjuster = StockAdjuster.for_universal_item()
        return self._stock_adjuster

    def _log_extra(self, document, **extra):
        return {"document": self.document, "document_id": document.pk, "party_id": document.party_id, **extra}

    def _compensate(self, step, document, func, *args):
        try:
            with transaction.atomic():
                func(*args)
        except Exception:
            logger.exception("compensation_failed step=%s", step, extra=self._log_extra(document))
            return False
        return True

    def _adjust_balance(self, document, amount, operation):
        return self._compensate(
            "balance", document, update_balance, document.party_id, amount, operation
        )

    def stored_lines(self, document):
        return [LineSpec.from_line(line) for line in document.lines.all()]

    def ensure_identifier_available(self, identifier, exclude_pk=None):
        qs = self.model.objects.filter(**{self.identifier_field: identifier})
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)
        if qs.exists():
            raise Conflict(self.conflict_message)

    def resolve_identifier(self, requested=None):
        raise NotImplementedError

    def _save(self, document, lines=None):
        try:
            with transaction.atomic():
                if lines is None:
                    current_lines = self.stored_lines(document)
                else:
                    current_lines = lines
                document.total_amount = to_money(sum((line.quantity * line.rate for line in current_lines), Decimal("0")))
                document.save()
                if lines is not None:
                    self.line_model.objects.filter(**{self.document: document}).delete()
                    self.line_model.objects.bulk_create(
                        [
                            self.line_model(
                                position=position,
                                item_id=line.item_id,
                                item_name=line.item_name,
                                quantity=line.quantity,
                                rate=line.rate,
                                total=line.total,
                                **{self.document: document},
                            )
                            for position, line in enumerate(lines)
                        ]
                    )
        except IntegrityError as exc:
            raise Conflict(self.conflict_message) from exc
        return document

    def create(self, *, party_name, phone_number, items, date, pdf_uri="", **extra):
        lines = list(items)
        identifier = self.resolve_identifier(extra.get(self.identifier_field))
        party, _ = find_or_create_party(party_name, phone_number)
        document = self.model(
            party=party,
            party_name=party_name,
            phone_number=phone_number,
            date=date,
            pdf_uri=pdf_uri or "",
            **{self.identifier_field: identifier},
        )
        self._save(document, lines)
        logger.info("document_created", extra=self._log_extra(document, amount=document.total_amount))

        self._adjust_balance(document, document.total_amount, self.balance_operation)
        self.stock_adjuster.apply_lines(lines, self.stock_direction)
        return document

    def update(self, document, *, items=None, **changes):
        identifier = changes.get(self.identifier_field)
        if identifier and identifier != getattr(document, self.identifier_field):
            self.ensure_identifier_available(identifier, exclude_pk=document.pk)
            setattr(document, self.identifier_field, identifier)

        original_total = document.total_amount
        original_lines = self.stored_lines(document)

        for field in ("party_name", "phone_number", "date"):
            if changes.get(field):
                setattr(document, field, changes[field])
        if changes.get("pdf_uri") is not None:
            document.pdf_uri = changes["pdf_uri"]

        new_lines = list(items) if items is not None else None
        self._save(document, new_lines)
        logger.info("document_updated", extra=self._log_extra(document, amount=document.total_amount))

        if document.party_id and document.total_amount != original_total:
            self._adjust_balance(document, document.total_amount - original_total, self.balance_operation)

        if new_lines is not None and new_lines != original_lines:
            self.reconcile_stock(original_lines, new_lines)
        return document

    def reconcile_stock(self, original_lines, new_lines):
        self.stock_adjuster.apply_lines(original_lines, reverse_direction(self.stock_direction))
        self.stock_adjuster.apply_lines(new_lines, self.stock_direction)

    def release(self, document):
        """Undo the stock and balance effects of ``document`` ahead of its removal."""
        self.stock_adjuster.apply_lines(self.stored_lines(document), reverse_direction(self.stock_direction))
        if document.party_id:
            self._adjust_balance(document, document.total_amount, reverse_balance_operation(self.balance_operation))

    def delete(self, document):
        self.release(document)
        document_id = document.pk
        document.delete()
        logger.info("document_deleted", extra={"document": self.document, "document_id": document_id})


class SaleLifecycle(TransactionLifecycle):
    model = Sale
    line_model = SaleLine
    document = "sale"
    identifier_field = "invoice_no"
    balance_operation = Party.BalanceOperation.ADD
    stock_direction = StockDirection.DECREASE
    conflict_message = "Invoice number already exists. Please retry."

    def resolve_identifier(self, requested=None):
        last = Sale.objects.order_by("-invoice_no").values_list("invoice_no", flat=True).first()
        match = LEADING_DIGITS.match(last or "")
        if match is None:
            return "1"
        return str(int(match.group(1)) + 1)


class PurchaseLifecycle(TransactionLifecycle):
    model = Purchase
    line_model = PurchaseLine
    document = "purchase"
    identifier_field = "bill_no"
    balance_operation = Party.BalanceOperation.SUBTRACT
    stock_direction = StockDirection.INCREASE
    conflict_message = "Bill number already exists. Please use a different bill number."

    def resolve_identifier(self, requested=None):
        self.ensure_identifier_available(requested)
        return requested

    def reconcile_stock(self, original_lines, new_lines):
        adjuster = self.stock_adjuster
        adjuster.apply_lines(original_lines, StockDirection.DECREASE, include_universal=False)
        adjuster.apply_lines(new_lines, StockDirection.INCREASE, include_universal=False)

        net_kg = sum((line.quantity for line in new_lines), Decimal("0")) - sum(
            (line.quantity for line in original_lines), Decimal("0")
        )
        if net_kg > 0:
            adjuster.adjust_universal(net_kg, StockDirection.INCREASE)
        elif net_kg < 0:
            adjuster.adjust_universal(-net_kg, StockDirection.DECREASE)

    def bulk_delete(self, purchase_ids):
        purchases = list(Purchase.objects.filter(pk__in=purchase_ids).prefetch_related("lines"))
        if not purchases:
            raise NotFound("No purchases found to delete.")

        for purchase in purchases:
            self.release(purchase)
        deleted_ids = [purchase.pk for purchase in purchases]
        _, deleted_by_model = Purchase.objects.filter(pk__in=deleted_ids).delete()
        deleted_count = deleted_by_model.get(Purchase._meta.label, 0)
        logger.info("purchases_bulk_deleted count=%s", deleted_count, extra={"document": self.document})
        return deleted_count, purchases
