from django.contrib import admin

from .models import Mosque


@admin.register(Mosque)
class MosqueAdmin(admin.ModelAdmin):
    list_display = ("name", "user", "is_active", "created_at")
    search_fields = ("name", "user__email")
    list_filter = ("is_active",)
