"""Serializers for request parsing and domain model responses."""

from rest_framework import serializers

from registrations.domain import OrderStatus, PaymentMethod


class MoneyField(serializers.Field):
    def to_representation(self, value) -> str:
        return str(value)


class IdField(serializers.Field):
    def to_representation(self, value) -> str:
        return str(value)


class EnumField(serializers.Field):
    def to_representation(self, value) -> str:
        return value.value


# Requests


class OrderItemInputSerializer(serializers.Serializer):
    session_id = serializers.UUIDField()
    child_id = serializers.CharField(max_length=64)
    role_key = serializers.SlugField(max_length=50, required=False, allow_null=True, allow_blank=True)
    addon_key = serializers.SlugField(max_length=50, required=False, allow_null=True, allow_blank=True)


class OrderCreateSerializer(serializers.Serializer):
    parent_id = serializers.CharField(max_length=64)
    items = OrderItemInputSerializer(many=True, allow_empty=True)
    payment_method = serializers.ChoiceField(
        choices=[method.value for method in PaymentMethod],
        default=PaymentMethod.BANK_TRANSFER.value,
    )
    group_code = serializers.CharField(max_length=50, required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    join_waitlist = serializers.BooleanField(default=False)
    override = serializers.BooleanField(default=False)


class OrderListQuerySerializer(serializers.Serializer):
    parent_id = serializers.CharField(max_length=64)
    status = serializers.ChoiceField(
        choices=["all"] + [status.value for status in OrderStatus], required=False
    )


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)


class WaitlistJoinSerializer(serializers.Serializer):
    session_id = serializers.UUIDField()
    parent_id = serializers.CharField(max_length=64)
    child_id = serializers.CharField(max_length=64)
    role_key = serializers.SlugField(max_length=50, required=False, allow_null=True, allow_blank=True)


class WaitlistClaimSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(
        choices=[method.value for method in PaymentMethod],
        default=PaymentMethod.BANK_TRANSFER.value,
    )
    group_code = serializers.CharField(max_length=50, required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


# Responses


class SessionAvailabilitySerializer(serializers.Serializer):
    """Public availability. The hidden buffer is never part of it."""

    id = IdField(source="session_id")
    title = serializers.CharField()
    status = EnumField()
    capacity = serializers.IntegerField()
    registered = serializers.IntegerField()
    available = serializers.IntegerField()
    is_waitlist_only = serializers.BooleanField()


class RoleAvailabilitySerializer(serializers.Serializer):
    key = serializers.CharField()
    name = serializers.CharField()
    capacity = serializers.IntegerField()
    assigned = serializers.IntegerField()
    available = serializers.IntegerField()


class OrderItemSerializer(serializers.Serializer):
    session_id = IdField()
    child_id = serializers.CharField()
    role_key = serializers.CharField(allow_null=True)
    addon_key = serializers.CharField(allow_null=True)
    is_addon = serializers.BooleanField()
    price = MoneyField()
    discount_amount = MoneyField()


class OrderSerializer(serializers.Serializer):
    id = IdField()
    order_number = serializers.CharField()
    parent_id = serializers.CharField()
    status = EnumField()
    total_amount = MoneyField()
    discount_amount = MoneyField()
    final_amount = MoneyField()
    payment_deadline = serializers.DateTimeField()
    payment_method = EnumField()
    payment_proof_url = serializers.CharField(allow_null=True)
    group_code = serializers.CharField(allow_null=True)
    notes = serializers.CharField(allow_null=True)
    created_at = serializers.DateTimeField()
    confirmed_at = serializers.DateTimeField(allow_null=True)
    cancelled_at = serializers.DateTimeField(allow_null=True)
    cancellation_reason = serializers.CharField(allow_null=True)
    items = OrderItemSerializer(many=True)


class WaitlistEntrySerializer(serializers.Serializer):
    id = IdField()
    session_id = IdField()
    parent_id = serializers.CharField()
    child_id = serializers.CharField()
    role_key = serializers.CharField(allow_null=True)
    status = EnumField()
    created_at = serializers.DateTimeField()
    offered_at = serializers.DateTimeField(allow_null=True)
    expires_at = serializers.DateTimeField(allow_null=True)
