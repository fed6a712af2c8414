"""
Account Service Layer - authentication, user management, and the actor
checks used by the approval workflows.
"""
import logging
from typing import Dict, Optional

from django.contrib.auth import authenticate
from django.db import transaction
from django.db.models import ProtectedError

from core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .models import User

logger = logging.getLogger(__name__)


def get_user(user_id) -> User:
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"User {user_id} not found")


def get_approver(actor_id) -> User:
    """
    Resolve the actor of a workflow transition.

    Only active admin/manager users may approve, deny, or record returns.

    Raises:
        PermissionDeniedError: actor missing, unknown, inactive, or not staff
    """
    if actor_id in (None, ''):
        raise PermissionDeniedError("An approving user (approved_by) is required")
    try:
        actor = User.objects.get(pk=actor_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise PermissionDeniedError(f"User {actor_id} is not allowed to approve requests")
    if not actor.is_approver:
        raise PermissionDeniedError(
            f"User {actor_id} has role '{actor.role}'; only admin or manager may approve"
        )
    return actor


def authenticate_user(email: str, password: str) -> User:
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = authenticate(email=email, password=password)
    if user is None:
        logger.warning(f"Failed login attempt for {email}")
        raise AuthenticationError()

    logger.info(f"User {user.id} logged in (role: {user.role})")
    return user


def create_user(data: Dict) -> User:
    email = User.objects.normalize_email(data['email'])
    if User.objects.filter(email__iexact=email).exists():
        raise ValidationError(f"User with email {email} already exists")

    user = User.objects.create_user(
        email=email,
        password=data['password'],
        name=data.get('name', ''),
        role=data.get('role', User.Role.USER),
        department=data.get('department', ''),
    )
    logger.info(f"Created user {user.id} ({user.role})")
    return user


def update_user(user_id, data: Dict) -> User:
    user = get_user(user_id)

    email = data.get('email')
    if email and User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
        raise ValidationError(f"User with email {email} already exists")

    for field in ('email', 'name', 'role', 'department', 'is_active'):
        if field in data:
            setattr(user, field, data[field])

    password: Optional[str] = data.get('password')
    if password:
        user.set_password(password)

    user.save()
    return user


def delete_user(user_id) -> None:
    user = get_user(user_id)
    try:
        with transaction.atomic():
            user.delete()
    except ProtectedError:
        raise ConflictError(f"User {user_id} still owns requests or loans and cannot be deleted")
    logger.info(f"Deleted user {user_id}")
