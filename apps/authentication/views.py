import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework import generics, permissions, status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from core.exceptions import InvalidStateError

from .permissions import IsAdmin
from .serializers import RegisterSerializer, UserSerializer

User = get_user_model()
logger = logging.getLogger(__name__)


def issue_tokens(user) -> dict:
  refresh = RefreshToken.for_user(user)
  return {
    "refresh": str(refresh),
    "access": str(refresh.access_token),
    "user": UserSerializer(user).data,
  }


class RegisterView(generics.CreateAPIView):
  """
  Self sign-up. Every new account starts as a plain member; it becomes a
  mosque admin by registering a mosque.
  """

  serializer_class = RegisterSerializer
  permission_classes = [permissions.AllowAny]

  def create(self, request, *args, **kwargs):
    serializer = self.get_serializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    logger.info("Registered member %s", user.pk)
    return Response(issue_tokens(user), status=status.HTTP_201_CREATED)


class LoginView(APIView):
  permission_classes = [AllowAny]

  def post(self, request):
    email = (request.data.get("email") or "").strip().lower()
    password = request.data.get("password") or ""

    if not email or not password:
      return Response({"detail": "Email and password are required."}, status=status.HTTP_400_BAD_REQUEST)

    user = User.objects.filter(email=email).first()
    if user is None or not user.check_password(password):
      logger.info("Failed login for %s", email)
      return Response({"detail": "Invalid credentials."}, status=status.HTTP_401_UNAUTHORIZED)

    if not user.is_active:
      return Response({"detail": "User account is inactive."}, status=status.HTTP_403_FORBIDDEN)

    user.last_login = timezone.now()
    user.save(update_fields=["last_login"])
    return Response(issue_tokens(user), status=status.HTTP_200_OK)


class MeView(generics.RetrieveUpdateAPIView):
  serializer_class = UserSerializer
  permission_classes = [permissions.IsAuthenticated]

  def get_object(self):
    return self.request.user


class AccountDeleteView(APIView):
  """
  Close the caller's own account.

  Contribution and claim history stays with the mosque; the account is
  disabled, its email freed for reuse, its memberships withdrawn and its
  notifications removed. Owners of a mosque must hand it over first.
  """

  permission_classes = [permissions.IsAuthenticated]

  def delete(self, request):
    user = request.user
    password = request.data.get("password")
    if not password or not user.check_password(password):
      raise ValidationError({"password": "Enter your current password to delete your account."})
    if user.mosques.exists():
      raise InvalidStateError("Transfer or close your mosques before deleting your account.")

    with transaction.atomic():
      now = timezone.now()
      user.kariah_memberships.filter(status="active").update(status="withdrawn", withdrawn_at=now, updated_at=now)
      user.kariah_applications.exclude(status="approved").delete()
      user.notifications.all().delete()

      _, _, domain = (user.email or "").partition("@")
      user.email = f"deleted+{user.pk}@{domain or 'deleted.local'}"
      user.is_active = False
      user.set_unusable_password()
      user.save(update_fields=["email", "is_active", "password", "updated_at"])

    logger.info("Account %s closed by its owner", user.pk)
    return Response(status=status.HTTP_204_NO_CONTENT)


class UserListView(generics.ListAPIView):
  """
  Platform-admin list of active users.
  """

  serializer_class = UserSerializer
  permission_classes = [permissions.IsAuthenticated, IsAdmin]
  queryset = User.objects.filter(is_active=True).order_by("-created_at")
  filterset_fields = ["role"]
  search_fields = ["email", "full_name", "ic_passport_number"]
