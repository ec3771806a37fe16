"""
Grant or revoke the admin role. The API never changes it; this is the operator path.
  python -m cadence.scripts.set_admin USERNAME on|off
"""
import argparse
import sys

from cadence.core.database import SessionLocal
from cadence.repositories.users import UserNotFound, UserRepository


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Grant or revoke the admin role.")
    parser.add_argument("username")
    parser.add_argument("state", choices=["on", "off"])
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        try:
            user = UserRepository(db).set_admin(args.username, args.state == "on")
        except UserNotFound:
            print(f"User '{args.username}' not found.", file=sys.stderr)
            return 1
        print(f"User '{user.username}' admin={user.is_admin}.")
        print("Existing session tokens keep their old role claim until they expire.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
