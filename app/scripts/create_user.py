"""
Create an account without the registration flow (e.g. the first admin). Run from project root:
  python -m app.scripts.create_user USERNAME EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user admin admin@example.com your-secure-password ROLE_ADMIN

Staff, admin and super-admin accounts are active immediately; other roles stay
pending and the verification code is printed for the operator.
"""
import argparse
import sys

from pydantic import ValidationError as PydanticValidationError

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.tokens import TokenService
from app.models.user import ROLE_DESCRIPTIONS, UserRole
from app.schemas.auth import RegisterRequest
from app.services.accounts import AccountService, PendingVerification
from app.services.email import LogMailer
from app.services.errors import ServiceError


def _role_help() -> str:
    return "; ".join(f"{role.value}: {desc}" for role, desc in ROLE_DESCRIPTIONS.items())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Storefront account.")
    parser.add_argument("username", help="Username (3-50 chars, letters, digits, underscore)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (6-255 chars)")
    parser.add_argument(
        "role",
        nargs="?",
        default=UserRole.USER.value,
        choices=[r.value for r in UserRole],
        help=_role_help(),
    )
    args = parser.parse_args(argv)

    try:
        RegisterRequest(
            username=args.username.strip(),
            email=args.email.strip(),
            password=args.password,
            confirm_password=args.password,
        )
    except PydanticValidationError as e:
        for err in e.errors():
            print(f"Invalid {'.'.join(str(x) for x in err['loc']) or 'input'}: {err['msg']}", file=sys.stderr)
        return 1

    settings = get_settings()
    db = SessionLocal()
    try:
        service = AccountService(db, settings, LogMailer(), TokenService.from_settings(settings))
        result = service.create_account(
            args.username.strip(), args.email.strip(), args.password, UserRole(args.role)
        )
    except ServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()

    if isinstance(result, PendingVerification):
        print(
            f"Created pending account '{result.account.username}' with role '{args.role}'. "
            f"Verification code: {result.otp}"
        )
    else:
        print(f"Created active account '{result.username}' with role '{args.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
