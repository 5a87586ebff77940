"""Push token storage - lookups, registration and invalid token cleanup."""
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import PushToken
from ..utils.db_utils import retry_on_lock
from .push_sender import SendResult, classify_token

logger = logging.getLogger(__name__)


def _short(token: str) -> str:
    return f"{token[:20]}..."


class TokenStore:
    """Reads and writes push token records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_all_tokens(self) -> List[PushToken]:
        """Every active token, oldest registration first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(PushToken).where(PushToken.active == 1).order_by(PushToken.id)
            )
            return list(result.scalars().all())

    async def get_user_tokens(self, user_id: str) -> List[PushToken]:
        """Active tokens owned by one user."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(PushToken)
                .where(PushToken.user_id == user_id, PushToken.active == 1)
                .order_by(PushToken.id)
            )
            return list(result.scalars().all())

    async def get_tokens_by_user(self) -> Tuple[Dict[str, List[PushToken]], int]:
        """Active tokens grouped by owner in first-seen order.

        Returns:
            Tuple of (tokens per user id, number of tokens skipped for having no owner)
        """
        grouped: Dict[str, List[PushToken]] = {}
        skipped = 0
        for record in await self.get_all_tokens():
            if not record.user_id:
                skipped += 1
                continue
            grouped.setdefault(record.user_id, []).append(record)

        if skipped:
            logger.warning(f"Skipped {skipped} push tokens with no owning user")
        return grouped, skipped

    async def list_user_records(self, user_id: str) -> List[PushToken]:
        """All token records of a user, active or not (inspection endpoint)."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(PushToken).where(PushToken.user_id == user_id).order_by(PushToken.id)
            )
            return list(result.scalars().all())

    async def list_all_records(self) -> List[PushToken]:
        async with self._session_factory() as session:
            result = await session.execute(select(PushToken).order_by(PushToken.id))
            return list(result.scalars().all())

    async def save_token(
        self,
        user_id: str,
        token: str,
        device_id: Optional[str] = None,
    ) -> PushToken:
        """Register a token, or update the existing record with the same token string."""
        device_id = device_id or f"device_{int(time.time() * 1000)}"
        token_type = classify_token(token)

        async with self._session_factory() as session:
            result = await session.execute(
                select(PushToken).where(PushToken.token == token)
            )
            record = result.scalar_one_or_none()

            if record:
                record.user_id = user_id
                record.device_id = device_id
                record.token_type = token_type
                record.active = 1
                record.updated_at = datetime.utcnow()
                logger.info(f"Push token updated for user {user_id}: {_short(token)}")
            else:
                record = PushToken(
                    token=token,
                    user_id=user_id,
                    device_id=device_id,
                    token_type=token_type,
                    active=1,
                )
                session.add(record)
                logger.info(f"Push token saved for user {user_id} ({token_type})")

            await retry_on_lock(session.commit)
            await session.refresh(record)
            return record

    async def delete_token(self, user_id: str, device_id: str) -> int:
        """Delete the token of one user's device. Returns the number of rows removed."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(PushToken).where(
                    PushToken.user_id == user_id,
                    PushToken.device_id == device_id,
                )
            )
            await retry_on_lock(session.commit)
            return result.rowcount or 0

    async def delete_by_token(self, token: str) -> int:
        """Delete a token record by token string. Absent tokens are not an error."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(PushToken).where(PushToken.token == token)
            )
            await retry_on_lock(session.commit)
            return result.rowcount or 0

    async def cleanup_invalid(
        self,
        tokens: Sequence[str],
        results: Sequence[SendResult],
    ) -> int:
        """Delete tokens whose paired send result is flagged invalid.

        results[i] must describe tokens[i]. A failed delete is logged and the
        remaining deletes still run.

        Returns:
            Number of token records removed
        """
        if len(tokens) != len(results):
            logger.error(
                f"Token cleanup skipped: {len(results)} results for {len(tokens)} tokens"
            )
            return 0

        removed = 0
        for token, result in zip(tokens, results):
            if not result.invalid:
                continue
            try:
                removed += await self.delete_by_token(token)
                logger.info(f"Removed invalid push token: {_short(token)}")
            except Exception as e:
                logger.error(f"Failed to remove invalid token {_short(token)}: {e}")

        return removed
