from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "user", "mosque", "type", "is_read", "created_at")
    search_fields = ("title", "user__email")
    list_filter = ("type", "is_read")
