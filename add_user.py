"""Create a board user and print its ID (use it as MCP_USER_ID)."""
import argparse

from taskboard.database import create_tables, get_session
from taskboard.models import User
from taskboard.routers.auth import get_password_hash


def main():
    parser = argparse.ArgumentParser(description="Create a task board user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name", default=None)
    args = parser.parse_args()

    create_tables()

    with get_session() as db:
        existing_user = db.query(User).filter(User.email == args.email).first()
        if existing_user:
            print(f"User already exists: {existing_user.id}")
            return

        user = User(email=args.email, hashed_password=get_password_hash(args.password), name=args.name)
        db.add(user)
        db.commit()
        db.refresh(user)
        print(f"User created: {user.email}")
        print(f"MCP_USER_ID={user.id}")


if __name__ == "__main__":
    main()
