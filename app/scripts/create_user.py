"""
Create a user (e.g. first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user admin@example.com 'Your-secure-passw0rd' ADMIN
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import (
    hash_password,
    is_valid_email,
    normalize_email,
    password_policy_violation,
)
from app.models import ROLES, UserAccount
from app.services.profiles import ProfileService
from app.services.users import CachedUserStore, UserCache, UserStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a user account with a profile.")
    parser.add_argument("email", help="Email address (stored lowercased)")
    parser.add_argument("password", help="Password (8-100 chars, mixed classes)")
    parser.add_argument("role", nargs="?", default="USER", type=str.upper, choices=ROLES)
    args = parser.parse_args()

    email = normalize_email(args.email)
    if not email or not is_valid_email(email):
        print("Invalid email address.", file=sys.stderr)
        return 1
    violation = password_policy_violation(args.password)
    if violation:
        print(violation, file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        users = CachedUserStore(UserStore(db), UserCache())
        if users.exists_by_email(email):
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        account = users.save(
            UserAccount(email=email, password_hash=hash_password(args.password), role=args.role)
        )
        profile = ProfileService(db).create_for_user(account.id, None, email)
        db.commit()
        print(f"Created user '{email}' with role '{args.role}' and profile '{profile.slug}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
