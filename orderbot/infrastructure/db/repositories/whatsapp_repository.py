from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from orderbot.infrastructure.db.models import WhatsAppDeadLetter


class WhatsAppDeadLetterRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        to_number: str,
        payload: str,
        failure_reason: str,
        last_error: Optional[str],
        retry_count: int,
    ) -> WhatsAppDeadLetter:
        dead_letter = WhatsAppDeadLetter(
            to_number=to_number,
            payload=payload,
            failure_reason=failure_reason,
            last_error=last_error,
            retry_count=retry_count,
        )
        self.db.add(dead_letter)
        await self.db.commit()
        return dead_letter

