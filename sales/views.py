from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import AuditMutationMixin
from common.permissions import RoleCapabilityPermission
from common.utils import parse_range_bound, sanitize_phone_number
from sales.models import Payment, Purchase, Sale
from sales.payments import cleanup_duplicate_payments, create_payment, delete_payment, update_payment
from sales.reports import filter_created_between, payment_summary
from sales.serializers import (
    DocumentWriteSerializer,
    PaymentSerializer,
    PaymentWriteSerializer,
    PurchaseBulkDeleteSerializer,
    PurchaseSerializer,
    PurchaseWriteSerializer,
    SaleSerializer,
)
from sales.services import LineSpec, PurchaseLifecycle, SaleLifecycle

LEDGER_READ_ACTIONS = ["list", "retrieve", "by_party", "date_range", "summary", "by_type"]
LEDGER_WRITE_ACTIONS = ["create", "update", "partial_update", "destroy", "bulk_delete"]


def ledger_permission_map(**overrides):
    permission_map = {action: "ledger.view" for action in LEDGER_READ_ACTIONS}
    permission_map.update({action: "ledger.write" for action in LEDGER_WRITE_ACTIONS})
    permission_map.update(overrides)
    return permission_map


def parse_created_range(params, *, required=False):
    start_raw = params.get("start_date")
    end_raw = params.get("end_date")
    if required and (not start_raw or not end_raw):
        raise ValidationError({"detail": "start_date and end_date are required."})

    start = parse_range_bound(start_raw)
    end = parse_range_bound(end_raw, end_of_day=True)
    errors = {}
    if start_raw and start is None:
        errors["start_date"] = ["Invalid date."]
    if end_raw and end is None:
        errors["end_date"] = ["Invalid date."]
    if errors:
        raise ValidationError(errors)
    return start, end


class PaginatedListMixin:
    def _paginated(self, qs):
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(qs, many=True).data)


class LedgerDocumentViewSet(PaginatedListMixin, AuditMutationMixin, viewsets.ModelViewSet):
    """Sales and purchases share one API shape; the lifecycle class keeps balances and stock in step."""

    lifecycle_class = None
    write_serializer_class = None
    identifier_field = None
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = ledger_permission_map()

    def get_lifecycle(self):
        return self.lifecycle_class()

    def get_queryset(self):
        qs = super().get_queryset().select_related("party").prefetch_related("lines")
        if self.action != "list":
            return qs

        params = self.request.query_params
        if params.get("party_name"):
            qs = qs.filter(party_name__icontains=params["party_name"])
        if params.get("phone_number"):
            qs = qs.filter(phone_number=sanitize_phone_number(params["phone_number"]))
        if params.get("date"):
            qs = qs.filter(date=params["date"])
        search = params.get("search")
        if search:
            qs = qs.filter(
                Q(party_name__icontains=search)
                | Q(phone_number__icontains=search)
                | Q(**{f"{self.identifier_field}__icontains": search})
            )
        return qs.order_by("-created_at")

    def _reload(self, document):
        return self.get_queryset().get(pk=document.pk)

    def _validated_write(self, partial=False):
        serializer = self.write_serializer_class(data=self.request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        items = data.pop("items", None)
        if items is not None:
            items = [LineSpec.from_data(item) for item in items]
        return items, data

    def create(self, request, *args, **kwargs):
        items, data = self._validated_write()
        document = self.get_lifecycle().create(items=items, **data)
        payload = self.get_serializer(self._reload(document)).data
        self._audit(action="create", instance=document, after_snapshot=payload)
        return Response(payload, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        document = self.get_object()
        items, data = self._validated_write(partial=True)
        before_snapshot = self.get_serializer(document).data
        document = self.get_lifecycle().update(document, items=items, **data)
        payload = self.get_serializer(self._reload(document)).data
        self._audit(action="update", instance=document, before_snapshot=before_snapshot, after_snapshot=payload)
        return Response(payload)

    def destroy(self, request, *args, **kwargs):
        document = self.get_object()
        before_snapshot = self.get_serializer(document).data
        document_id = document.pk
        self.get_lifecycle().delete(document)
        document.pk = document_id
        self._audit(action="delete", instance=document, before_snapshot=before_snapshot)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"], url_path="by-party")
    def by_party(self, request):
        party_name = request.query_params.get("party_name")
        phone_number = request.query_params.get("phone_number")
        if not party_name or not phone_number:
            raise ValidationError({"detail": "party_name and phone_number are required."})
        qs = self.get_queryset().filter(party_name=party_name.strip(), phone_number=sanitize_phone_number(phone_number))
        return self._paginated(qs.order_by("-created_at"))

    @action(detail=False, methods=["get"], url_path="date-range")
    def date_range(self, request):
        start, end = parse_created_range(request.query_params, required=True)
        qs = filter_created_between(self.get_queryset(), start, end)
        return self._paginated(qs.order_by("-created_at"))


class SaleViewSet(LedgerDocumentViewSet):
    queryset = Sale.objects.all()
    serializer_class = SaleSerializer
    write_serializer_class = DocumentWriteSerializer
    lifecycle_class = SaleLifecycle
    identifier_field = "invoice_no"
    audit_entity = "sale"


class PurchaseViewSet(LedgerDocumentViewSet):
    queryset = Purchase.objects.all()
    serializer_class = PurchaseSerializer
    write_serializer_class = PurchaseWriteSerializer
    lifecycle_class = PurchaseLifecycle
    identifier_field = "bill_no"
    audit_entity = "purchase"

    @action(detail=False, methods=["post", "delete"], url_path="bulk-delete")
    def bulk_delete(self, request):
        serializer = PurchaseBulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        deleted_count, purchases = self.get_lifecycle().bulk_delete(serializer.validated_data["purchase_ids"])
        for purchase in purchases:
            self._audit(action="delete", instance=purchase, before_snapshot={"bill_no": purchase.bill_no, "total_amount": str(purchase.total_amount)})
        return Response({"deleted_count": deleted_count})


class PaymentViewSet(PaginatedListMixin, AuditMutationMixin, viewsets.ModelViewSet):
    queryset = Payment.objects.select_related("party")
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = ledger_permission_map(cleanup="payment.cleanup")
    audit_entity = "payment"

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != "list":
            return qs

        params = self.request.query_params
        payment_type = params.get("type")
        if payment_type and payment_type != "all":
            qs = qs.filter(type=payment_type)
        if params.get("party_name"):
            qs = qs.filter(party_name__icontains=params["party_name"])
        if params.get("phone_number"):
            qs = qs.filter(phone_number=sanitize_phone_number(params["phone_number"]))
        start, end = parse_created_range(params)
        qs = filter_created_between(qs, start, end)
        search = params.get("search")
        if search:
            qs = qs.filter(
                Q(party_name__icontains=search) | Q(phone_number__icontains=search) | Q(payment_no__icontains=search)
            )
        return qs.order_by("-created_at")

    def create(self, request, *args, **kwargs):
        serializer = PaymentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        payment = create_payment(payment_type=data.pop("type"), **data)
        payload = self.get_serializer(self.get_queryset().get(pk=payment.pk)).data
        self._audit(action="create", instance=payment, after_snapshot=payload)
        return Response(payload, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        payment = self.get_object()
        serializer = PaymentWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop("type", None)
        before_snapshot = self.get_serializer(payment).data
        payment = update_payment(payment, **data)
        payload = self.get_serializer(self.get_queryset().get(pk=payment.pk)).data
        self._audit(action="update", instance=payment, before_snapshot=before_snapshot, after_snapshot=payload)
        return Response(payload)

    def destroy(self, request, *args, **kwargs):
        payment = self.get_object()
        before_snapshot = self.get_serializer(payment).data
        payment_id = payment.pk
        delete_payment(payment)
        payment.pk = payment_id
        self._audit(action="delete", instance=payment, before_snapshot=before_snapshot)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        start, end = parse_created_range(request.query_params)
        return Response(payment_summary(start, end))

    @action(detail=False, methods=["get"], url_path=r"type/(?P<payment_type>[^/.]+)")
    def by_type(self, request, payment_type=None):
        if payment_type not in Payment.Type.values:
            raise ValidationError({"type": ["Invalid payment type. Must be payment-in or payment-out."]})
        qs = self.get_queryset().filter(type=payment_type).order_by("-created_at")
        return self._paginated(qs)

    @action(detail=False, methods=["post"], url_path="cleanup")
    def cleanup(self, request):
        result = cleanup_duplicate_payments()
        return Response(result)
