"""
Script to create a human user with a password for local testing.
"""

import argparse
import asyncio

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context
from app.models.user import User


async def create_user(email: str, password: str, first_name: str, last_name: str):
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email.lower()))
        if result.scalar_one_or_none():
            print(f"User {email} already exists.")
            return

        session.add(
            User(
                email=email.lower(),
                first_name=first_name,
                last_name=last_name,
                password_hash=hash_password(password),
            )
        )
        print(f"Created user: {email}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a local user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--first-name", default="Local")
    parser.add_argument("--last-name", default="User")

    args = parser.parse_args()

    asyncio.run(create_user(args.email, args.password, args.first_name, args.last_name))


if __name__ == "__main__":
    main()
