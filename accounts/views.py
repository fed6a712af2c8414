"""
Account API Views.

Implements:
- POST /auth/login - authenticate by email/password (rate limited)
- GET/POST /users - list and create users
- GET/PUT/DELETE /users/{id} - user detail, update, delete
"""
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import rate_limit
from .models import User
from .serializers import (
    LoginSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserUpdateSerializer,
)
from . import services


class LoginView(APIView):
    """
    POST: Authenticate a user.

    Returns the user without the password. Rate limited to 10 attempts per
    minute per client IP.
    """

    @rate_limit(max_requests=10, window_seconds=60)
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = services.authenticate_user(
            serializer.validated_data['email'],
            serializer.validated_data['password'],
        )
        user_data = UserSerializer(user).data
        user_data['username'] = user.name or user.email

        return Response({
            'success': True,
            'message': 'Login successful',
            'user': user_data,
        })


class UserListCreateView(generics.ListAPIView):
    """
    GET: List all users
    POST: Create a user with a hashed password
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.create_user(serializer.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class UserDetailView(APIView):
    """
    GET: Retrieve a user
    PUT: Update a user
    DELETE: Delete a user that owns no requests or loans
    """

    def get(self, request, pk):
        return Response(UserSerializer(services.get_user(pk)).data)

    def put(self, request, pk):
        serializer = UserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.update_user(pk, serializer.validated_data)
        return Response(UserSerializer(user).data)

    def delete(self, request, pk):
        services.delete_user(pk)
        return Response({'success': True, 'message': 'User deleted successfully'})
