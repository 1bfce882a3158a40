# taskboard/services/credential_store.py
import asyncio
import functools
import logging
from concurrent.futures import Executor
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from taskboard.errors import AlreadyExists, InvalidCredentials, InvalidInput, StorageFailure
from taskboard.models.user import User
from taskboard.services.auth_service import hash_password, verify_password

logger = logging.getLogger("taskboard.credentials")

@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """Hash compared against when the email is unknown, so both failure paths cost one bcrypt check."""
    return hash_password("taskboard-dummy-password")


class CredentialStore:
    """Owns the user records: register new accounts and verify logins."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], executor: Optional[Executor] = None):
        self._sessionmaker = sessionmaker
        self._executor = executor
        self._lock = asyncio.Lock()

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def _find(self, session: AsyncSession, email: str) -> Optional[User]:
        q = await session.execute(select(User).filter_by(email=email))
        return q.scalars().first()

    async def register(self, email: Optional[str], password: Optional[str]) -> User:
        if not email or not password:
            raise InvalidInput("Email and password required")

        async with self._lock:
            try:
                async with self._sessionmaker() as session:
                    if await self._find(session, email):
                        raise AlreadyExists("User exists")
                    password_hash = await self._run(hash_password, password)
                    user = User(email=email, password_hash=password_hash)
                    session.add(user)
                    await session.commit()
            except IntegrityError as exc:
                # unique index on email, in case another process won the race
                raise AlreadyExists("User exists") from exc
            except SQLAlchemyError as exc:
                logger.error("Failed to persist user %s: %s", email, exc)
                raise StorageFailure("Failed to save user") from exc

        logger.info("User registered: %s", email)
        return user

    async def verify(self, email: Optional[str], password: Optional[str]) -> User:
        if not email or not password:
            raise InvalidCredentials()
        try:
            async with self._sessionmaker() as session:
                user = await self._find(session, email)
        except SQLAlchemyError as exc:
            logger.error("Failed to read users: %s", exc)
            raise StorageFailure("Failed to read users") from exc

        hashed = user.password_hash if user else await self._run(_dummy_hash)
        ok = await self._run(verify_password, password, hashed)
        if not user or not ok:
            logger.info("Login rejected for %s", email)
            raise InvalidCredentials()
        return user
