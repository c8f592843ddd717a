from django.db import transaction
from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import AuditMutationMixin
from common.exceptions import Conflict
from common.permissions import RoleCapabilityPermission
from parties.models import Party
from parties.serializers import BalanceUpdateSerializer, FindOrCreatePartySerializer, PartySerializer
from parties.services import find_or_create_party, update_balance
from sales.reports import party_transactions

PARTY_CONFLICT_MESSAGE = "Party with this name and phone number already exists."


class PartyViewSet(AuditMutationMixin, viewsets.ModelViewSet):
    queryset = Party.objects.all()
    serializer_class = PartySerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "ledger.view",
        "retrieve": "ledger.view",
        "transactions": "ledger.view",
        "create": "ledger.write",
        "update": "ledger.write",
        "partial_update": "ledger.write",
        "destroy": "ledger.write",
        "find_or_create": "ledger.write",
        "balance": "party.balance.override",
    }
    audit_entity = "party"

    def get_queryset(self):
        qs = super().get_queryset()
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(phone_number__icontains=search))
        return qs.order_by("-created_at")

    def perform_create(self, serializer):
        if serializer.find_conflict(serializer.validated_data):
            raise Conflict(PARTY_CONFLICT_MESSAGE)
        serializer.validated_data.pop("balance", None)
        super().perform_create(serializer)

    def perform_update(self, serializer):
        if serializer.find_conflict(serializer.validated_data):
            raise Conflict(PARTY_CONFLICT_MESSAGE)
        balance = serializer.validated_data.pop("balance", None)
        before_snapshot = self.get_serializer(serializer.instance).data
        with transaction.atomic():
            instance = serializer.save()
            if balance is not None:
                instance = update_balance(instance.pk, balance, Party.BalanceOperation.SET)
                serializer.instance = instance
        self._audit(action="update", instance=instance, before_snapshot=before_snapshot, after_snapshot=self.get_serializer(instance).data)

    @action(detail=False, methods=["post"], url_path="find-or-create")
    def find_or_create(self, request):
        serializer = FindOrCreatePartySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        party, created = find_or_create_party(
            data["name"],
            data["phone_number"],
            address=data.get("address"),
            email=data.get("email"),
        )
        payload = self.get_serializer(party).data
        if created:
            self._audit(action="create", instance=party, after_snapshot=payload)
        return Response(payload, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=True, methods=["patch"], url_path="balance")
    def balance(self, request, pk=None):
        party = self.get_object()
        serializer = BalanceUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before_snapshot = self.get_serializer(party).data
        party = update_balance(party.pk, serializer.validated_data["amount"], serializer.validated_data["operation"])
        payload = self.get_serializer(party).data
        self._audit(action="balance", instance=party, before_snapshot=before_snapshot, after_snapshot=payload)
        return Response(payload)

    @action(detail=True, methods=["get"], url_path="transactions")
    def transactions(self, request, pk=None):
        return Response(party_transactions(self.get_object()))
