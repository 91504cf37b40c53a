from django.contrib import admin

from .models import KariahApplication, KariahMembership


@admin.register(KariahApplication)
class KariahApplicationAdmin(admin.ModelAdmin):
    list_display = ("user", "mosque", "status", "reviewed_by", "created_at")
    list_filter = ("status",)
    search_fields = ("user__email", "user__full_name", "ic_passport_number", "mosque__name")
    readonly_fields = ("version", "reviewed_at", "created_at", "updated_at")


@admin.register(KariahMembership)
class KariahMembershipAdmin(admin.ModelAdmin):
    list_display = ("membership_number", "user", "mosque", "status", "joined_date")
    list_filter = ("status",)
    search_fields = ("membership_number", "user__email", "mosque__name")
