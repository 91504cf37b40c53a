from django.contrib import admin

from .models import PaymentLog, PaymentProvider


@admin.register(PaymentProvider)
class PaymentProviderAdmin(admin.ModelAdmin):
    list_display = ("mosque", "provider_type", "is_active", "is_sandbox", "updated_at")
    list_filter = ("provider_type", "is_active", "is_sandbox")
    search_fields = ("mosque__name",)
    exclude = ("billplz_api_key", "billplz_x_signature_key", "toyyibpay_secret_key")


@admin.register(PaymentLog)
class PaymentLogAdmin(admin.ModelAdmin):
    list_display = ("provider", "reference", "created_at")
    search_fields = ("provider", "reference")
