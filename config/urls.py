from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

schema_view = get_schema_view(
    openapi.Info(
        title="Masjid API",
        default_version="v1",
        description="Kariah membership, khairat claims and contributions, and payment gateway settings.",
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/docs/", schema_view.with_ui("swagger", cache_timeout=0), name="api-docs"),
    path("api/auth/", include("apps.authentication.urls")),
    path("api/mosques/", include("apps.mosques.urls")),
    path("api/kariah/", include("apps.kariah.urls")),
    path("api/khairat/", include("apps.khairat.urls")),
    path("api/payments/", include("apps.payments.urls")),
    path("api/notifications/", include("apps.notifications.urls")),
]
