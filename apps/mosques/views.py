from rest_framework import permissions, viewsets

from .models import Mosque
from .permissions import IsMosqueAdminOrReadOnly
from .serializers import MosqueSerializer


class MosqueViewSet(viewsets.ModelViewSet):
    """
    Mosques are publicly listed; the creating user becomes the mosque admin.
    """

    queryset = Mosque.objects.select_related("user").filter(is_active=True)
    serializer_class = MosqueSerializer
    search_fields = ["name", "address"]
    http_method_names = ["get", "post", "put", "patch", "head", "options"]

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated(), IsMosqueAdminOrReadOnly()]

    def perform_create(self, serializer):
        user = self.request.user
        serializer.save(user=user)
        if user.role == "member":
            user.role = "mosque_admin"
            user.save(update_fields=["role"])
