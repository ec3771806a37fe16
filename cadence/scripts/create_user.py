"""
Create a user (e.g. the first admin). Run from project root:
  python -m cadence.scripts.create_user USERNAME EMAIL PASSWORD [--admin]
Example:
  python -m cadence.scripts.create_user admin admin@example.com your-secure-password --admin
"""
import argparse
import sys

from cadence.core.config import get_settings
from cadence.core.database import SessionLocal
from cadence.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    PasswordHasher,
)
from cadence.repositories.users import DuplicateKey, UserRepository
from cadence.services.auth import is_valid_email


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Cadence user account.")
    parser.add_argument("username", help=f"Username (1-{USERNAME_MAX_LEN} chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("--admin", action="store_true", help="Grant the admin role")
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username or len(username) > USERNAME_MAX_LEN:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not is_valid_email(args.email):
        print("Invalid email address.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    hasher = PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)
    db = SessionLocal()
    try:
        users = UserRepository(db)
        try:
            user = users.create(username, args.email, hasher.hash(args.password))
        except DuplicateKey:
            print("Username or email already exists.", file=sys.stderr)
            return 1
        if args.admin:
            user = users.set_admin(username, True)
        role = "admin" if user.is_admin else "user"
        print(f"Created user '{username}' (id={user.id}) with role '{role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
