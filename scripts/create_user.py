"""Create a staff user and print an access token for it.

Usage:
    python scripts/create_user.py "Asha Admin" asha@example.com ADMIN
"""
import argparse
import asyncio

from sqlalchemy import select

from servicecrm.core.enum_utils import to_enum
from servicecrm.core.security import create_access_token
from servicecrm.database import get_db_session, init_db
from servicecrm.models.user import User, UserRole


async def create_user(name: str, email: str, role: UserRole) -> None:
    await init_db()
    async with get_db_session() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(name=name, email=email, role=role.value)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            print(f"Created {role.value} user {user.id} <{email}>")
        else:
            print(f"User {user.id} <{email}> already exists ({user.role})")

    print(create_access_token(user.id, additional_claims={"role": user.role}))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("name")
    parser.add_argument("email")
    parser.add_argument("role", nargs="?", default=UserRole.USER.value)
    args = parser.parse_args()

    role = to_enum(args.role, UserRole)
    if role is None:
        parser.error(f"role must be one of {', '.join(r.value for r in UserRole)}")
    asyncio.run(create_user(args.name, args.email, role))


if __name__ == "__main__":
    main()
