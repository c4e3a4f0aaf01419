"""Create a SpeakerDesk user.

Usage:
    python -m speakerdesk.create_user EMAIL USERNAME PASSWORD [--admin]
"""
import argparse
import sys

from sqlalchemy.exc import IntegrityError

from speakerdesk.auth.passwords import hash_password
from speakerdesk.database import Base, SessionLocal, engine
from speakerdesk.models.user import ADMIN_ROLE, USER_ROLE, User


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a SpeakerDesk user.")
    parser.add_argument("email")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--admin", action="store_true", help="grant the admin role")
    return parser


def create_user(email: str, username: str, password: str, admin: bool = False) -> User:
    Base.metadata.create_all(bind=engine, tables=[User.__table__])

    db = SessionLocal()
    try:
        user = User(
            email=email.strip().lower(),
            username=username.strip(),
            hashed_password=hash_password(password),
            role=ADMIN_ROLE if admin else USER_ROLE,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError:
        db.rollback()
        raise
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        user = create_user(args.email, args.username, args.password, admin=args.admin)
    except IntegrityError:
        print(f"A user with email {args.email} already exists.", file=sys.stderr)
        sys.exit(1)
    print(f"Created {user.role} {user.email} (id {user.id})")


if __name__ == "__main__":
    main()
