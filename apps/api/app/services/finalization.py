"""Lead resolution run after a call has been summarized."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.lead import Lead
from ..repositories import leads as leads_repo

logger = logging.getLogger(__name__)

UNKNOWN_CALLER_NAME = "Unknown"


async def resolve_lead(
    session: AsyncSession,
    *,
    phone: str,
    caller_name: str | None,
    owner_id: str | None,
) -> tuple[Lead, bool]:
    """Return the lead for ``phone``, creating it when none exists.

    The second element is ``True`` when this call created the lead. A unique
    index on ``leads.phone`` makes a concurrent creation fail here, in which
    case the winner's row is returned instead of a duplicate.
    """

    try:
        async with session.begin():
            lead = await leads_repo.get_by_phone(session, phone)
            if lead is not None:
                return lead, False
            lead = await leads_repo.create_lead(
                session,
                phone=phone,
                name=caller_name or UNKNOWN_CALLER_NAME,
                owner_id=owner_id,
            )
            logger.info("Created lead %s for %s", lead.id, phone)
            return lead, True
    except IntegrityError:
        logger.info("Lead for %s was created concurrently; linking existing row", phone)

    async with session.begin():
        lead = await leads_repo.get_by_phone(session, phone)
    if lead is None:
        raise RuntimeError(f"Lead for {phone} vanished after a duplicate insert")
    return lead, False
