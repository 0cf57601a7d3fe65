"""
Create Admin User Script
Run once against a fresh project to create the first admin-panel account.
Reads SUPABASE_URL and SUPABASE_SERVICE_KEY through the service settings (.env).
"""

import sys
from typing import Tuple

from supabase import Client, create_client

from rollcall.core.config import get_settings, validate_settings
from rollcall.core.exceptions import ConfigurationError, DatabaseError, RollCallException, ValidationError
from rollcall.models.profile import UserRole

MIN_PASSWORD_LENGTH = 6
DEFAULT_EMAIL = "admin@school.ac.th"
DEFAULT_NAME = "Admin User"


def create_admin_user(client: Client, email: str, password: str, full_name: str) -> str:
    """Create the auth user and its admin profile row; return the new user id."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            error_code="WEAK_PASSWORD",
        )

    auth_response = client.auth.admin.create_user({
        "email": email,
        "password": password,
        "email_confirm": True,
        "user_metadata": {"full_name": full_name, "role": UserRole.ADMIN.value},
    })
    if not auth_response.user:
        raise DatabaseError("Failed to create auth user", error_code="AUTH_USER_CREATE_FAILED")
    user_id = auth_response.user.id

    # Profiles share the auth user's id
    profile_response = client.table("profiles").upsert({
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "role": UserRole.ADMIN.value,
        "is_active": True,
    }).execute()
    if not profile_response.data:
        raise DatabaseError(
            "Auth user created but its profile row was not written",
            error_code="PROFILE_CREATE_FAILED",
            details={"user_id": user_id},
        )
    return user_id


def prompt_admin_details() -> Tuple[str, str, str]:
    email = input(f"Enter admin email (default: {DEFAULT_EMAIL}): ") or DEFAULT_EMAIL
    password = input(f"Enter admin password (min {MIN_PASSWORD_LENGTH} chars): ")
    full_name = input(f"Enter full name (default: {DEFAULT_NAME}): ") or DEFAULT_NAME
    return email, password, full_name


def main() -> int:
    try:
        validate_settings()
    except ConfigurationError as e:
        print(f"Error: {e.message}")
        return 1
    settings = get_settings()

    print("\nCreate Admin User")
    print("=" * 50)
    email, password, full_name = prompt_admin_details()

    client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    try:
        user_id = create_admin_user(client, email, password, full_name)
    except RollCallException as e:
        print(f"\nError: {e.message}")
        return 1

    print(f"\nAdmin user created: {user_id}")
    print(f"Login at POST /api/v1/auth/admin/login with {email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
