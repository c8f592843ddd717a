from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import AuditMutationMixin
from common.permissions import RoleCapabilityPermission
from inventory.models import Item
from inventory.serializers import ItemSerializer, UniversalStockSerializer
from inventory.services import ensure_universal_item, get_universal_item, override_universal_stock, summarize_items


class ItemViewSet(AuditMutationMixin, viewsets.ModelViewSet):
    queryset = Item.objects.all()
    serializer_class = ItemSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "ledger.view",
        "retrieve": "ledger.view",
        "summary": "ledger.view",
        "bardana": "ledger.view",
        "create": "item.manage",
        "update": "item.manage",
        "partial_update": "item.manage",
        "initialize_bardana": "item.manage",
        "destroy": "item.delete",
        "bardana_stock": "stock.override",
    }
    audit_entity = "item"

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        category = params.get("category")
        if category and category != "all":
            qs = qs.filter(category=category)
        is_universal = params.get("is_universal")
        if is_universal in {"true", "false"}:
            qs = qs.filter(is_universal=is_universal == "true")
        search = params.get("search")
        if search:
            qs = qs.filter(Q(product_name__icontains=search))
        return qs.order_by("-created_at")

    def perform_destroy(self, instance):
        if instance.is_universal:
            raise ValidationError({"product_name": ["Universal items cannot be deleted."]})
        super().perform_destroy(instance)

    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        return Response(summarize_items())

    @action(detail=False, methods=["get"], url_path="bardana")
    def bardana(self, request):
        item = get_universal_item()
        if item is None:
            raise NotFound("Bardana item not found.")
        return Response(self.get_serializer(item).data)

    @action(detail=False, methods=["post"], url_path="bardana/initialize")
    def initialize_bardana(self, request):
        item, created = ensure_universal_item()
        payload = self.get_serializer(item).data
        if created:
            self._audit(action="create", instance=item, after_snapshot=payload)
        return Response(payload, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=False, methods=["put"], url_path="bardana/stock")
    def bardana_stock(self, request):
        serializer = UniversalStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = get_universal_item()
        before_snapshot = self.get_serializer(before).data if before is not None else None
        item = override_universal_stock(serializer.validated_data["operation"], serializer.validated_data["quantity"])
        payload = self.get_serializer(item).data
        self._audit(action="stock_override", instance=item, before_snapshot=before_snapshot, after_snapshot=payload)
        return Response(payload)
