from django.contrib import admin

from .models import KhairatClaim, KhairatContribution


@admin.register(KhairatClaim)
class KhairatClaimAdmin(admin.ModelAdmin):
    list_display = ("title", "claimant", "mosque", "priority", "requested_amount", "approved_amount", "status")
    list_filter = ("status", "priority")
    search_fields = ("title", "claimant__email", "mosque__name")
    readonly_fields = ("version", "reviewed_at", "approved_at", "paid_at", "created_at", "updated_at")


@admin.register(KhairatContribution)
class KhairatContributionAdmin(admin.ModelAdmin):
    list_display = ("payer_name", "mosque", "amount", "payment_method", "status", "paid_at")
    list_filter = ("status", "payment_method", "payment_provider")
    search_fields = ("payer_name", "payer_email", "bill_id", "payment_reference")
