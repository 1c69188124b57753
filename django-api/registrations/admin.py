from django import forms
from django.contrib import admin

from registrations.models import Addon, CharacterRole, Order, OrderItem, Session, WaitlistEntry

# Counters are owned by the capacity ledger and are never written from a form.
SESSION_EDITABLE_FIELDS = ["title", "starts_at", "price", "capacity", "hidden_buffer", "status", "updated_at"]
ROLE_EDITABLE_FIELDS = ["key", "name", "capacity"]


class SessionAdminForm(forms.ModelForm):
    class Meta:
        model = Session
        fields = ["title", "starts_at", "price", "capacity", "hidden_buffer", "status"]

    def clean(self):
        cleaned = super().clean()
        if self.instance.pk is None:
            return cleaned
        registered = (
            Session.objects.filter(pk=self.instance.pk)
            .values_list("current_registrations", flat=True)
            .first()
        ) or 0
        capacity = cleaned.get("capacity") or 0
        hidden_buffer = cleaned.get("hidden_buffer") or 0
        if capacity + hidden_buffer < registered:
            raise forms.ValidationError(
                f"Capacity plus hidden buffer cannot drop below the {registered} current registration(s)."
            )
        return cleaned


class CharacterRoleForm(forms.ModelForm):
    class Meta:
        model = CharacterRole
        fields = ["key", "name", "capacity"]

    def clean_capacity(self):
        capacity = self.cleaned_data["capacity"]
        if self.instance.pk is not None:
            assigned = (
                CharacterRole.objects.filter(pk=self.instance.pk)
                .values_list("assigned", flat=True)
                .first()
            ) or 0
            if capacity < assigned:
                raise forms.ValidationError(
                    f"Capacity cannot drop below the {assigned} assigned registrant(s)."
                )
        return capacity


class CharacterRoleInline(admin.TabularInline):
    model = CharacterRole
    form = CharacterRoleForm
    extra = 1
    readonly_fields = ["assigned"]


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ["session", "child_id", "role_key", "addon", "price", "discount_amount"]
    can_delete = False


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    form = SessionAdminForm
    list_display = ["title", "starts_at", "status", "capacity", "hidden_buffer", "current_registrations"]
    list_filter = ["status"]
    search_fields = ["title"]
    readonly_fields = ["current_registrations"]
    inlines = [CharacterRoleInline]

    def save_model(self, request, obj, form, change):
        if change:
            obj.save(update_fields=SESSION_EDITABLE_FIELDS)
        else:
            super().save_model(request, obj, form, change)

    def save_formset(self, request, form, formset, change):
        if formset.model is not CharacterRole:
            return super().save_formset(request, form, formset, change)
        roles = formset.save(commit=False)
        for role in formset.deleted_objects:
            role.delete()
        for role in roles:
            if not role._state.adding:
                role.save(update_fields=ROLE_EDITABLE_FIELDS)
            else:
                role.save()
        formset.save_m2m()


@admin.register(Addon)
class AddonAdmin(admin.ModelAdmin):
    list_display = ["key", "name", "price", "max_per_session"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ["order_number", "parent_id", "status", "final_amount", "payment_deadline"]
    list_filter = ["status", "payment_method"]
    search_fields = ["order_number", "parent_id", "group_code"]
    # Status changes go through the lifecycle service, never a form save.
    readonly_fields = [
        "order_number",
        "status",
        "total_amount",
        "discount_amount",
        "final_amount",
        "payment_deadline",
        "payment_proof_url",
        "confirmed_at",
        "cancelled_at",
        "cancellation_reason",
    ]
    inlines = [OrderItemInline]


@admin.register(WaitlistEntry)
class WaitlistEntryAdmin(admin.ModelAdmin):
    list_display = ["session", "child_id", "role_key", "status", "created_at", "expires_at"]
    list_filter = ["status", "session"]
    readonly_fields = ["status", "offered_at", "expires_at", "claimed_order"]
