"""
Sequential human readable ids (RDC/EMR/CALL/00001, RDC/IC/PAPER/0001).

Counters live in the ``counters`` table and are incremented under a row
lock inside the caller's transaction, so two concurrent submissions never
receive the same number.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models import ClaimType, Counter

FUNDING_CALL_COUNTER = "emrCall"
EMR_INTEREST_COUNTER = "emrInterest"


async def next_sequence(db: AsyncSession, name: str) -> int:
    result = await db.execute(select(Counter).where(Counter.name == name).with_for_update())
    counter = result.scalar_one_or_none()
    if counter is None:
        counter = Counter(name=name, current=0)
        db.add(counter)
    counter.current += 1
    await db.flush()
    return counter.current


async def next_funding_call_id(db: AsyncSession) -> str:
    return f"RDC/EMR/CALL/{await next_sequence(db, FUNDING_CALL_COUNTER):05d}"


async def next_interest_id(db: AsyncSession) -> str:
    return f"RDC/EMR/INTEREST/{await next_sequence(db, EMR_INTEREST_COUNTER):05d}"


async def next_claim_id(db: AsyncSession, claim_type: ClaimType) -> str:
    acronym = claim_type.acronym
    return f"RDC/IC/{acronym}/{await next_sequence(db, f'incentiveClaim_{acronym}'):04d}"
