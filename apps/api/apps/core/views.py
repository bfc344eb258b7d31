"""
Core API views: current user profile and the ActionResult -> HTTP bridge
shared by every app's views.
"""
from rest_framework import serializers, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.context import AuthContext

# error_code -> HTTP status
ERROR_STATUS = {
    'unauthenticated': status.HTTP_401_UNAUTHORIZED,
    'unauthorized': status.HTTP_403_FORBIDDEN,
    'validation_failed': status.HTTP_400_BAD_REQUEST,
    'not_found': status.HTTP_404_NOT_FOUND,
    'invalid_transition': status.HTTP_409_CONFLICT,
    'slot_unavailable': status.HTTP_409_CONFLICT,
    'invalid_state': status.HTTP_409_CONFLICT,
    'insufficient_stock': status.HTTP_409_CONFLICT,
    'conflict': status.HTTP_409_CONFLICT,
    'unexpected': status.HTTP_503_SERVICE_UNAVAILABLE,
}


def action_response(result, success_status=status.HTTP_200_OK):
    """Render an ActionResult as a DRF Response."""
    if result.success:
        return Response(result.to_dict(), status=success_status)
    return Response(
        result.to_dict(),
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST)
    )


class UserProfileSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    is_active = serializers.BooleanField()
    role = serializers.CharField()
    roles = serializers.ListField(child=serializers.CharField())


class CurrentUserView(APIView):
    """
    GET /api/auth/me/ - profile of the authenticated user.

    `role` is the highest held role (admin > medico > enfermera >
    secretaria, or "none"); `roles` lists all of them.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ctx = AuthContext.from_user(request.user)
        serializer = UserProfileSerializer({
            'id': request.user.id,
            'email': request.user.email,
            'is_active': request.user.is_active,
            'role': ctx.role,
            'roles': sorted(ctx.roles),
        })
        return Response(serializer.data, status=status.HTTP_200_OK)
