"""Company credit wallet and append-only credit ledger."""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.constants import LEDGER_REASON_PURCHASE
from execmarket.db.models import Company, CreditLedger


async def get_balance(db: AsyncSession, company_id: str) -> int:
    result = await db.execute(select(Company.credits_balance).where(Company.id == company_id))
    balance = result.scalar_one_or_none()
    return balance or 0


async def get_ledger_entry(db: AsyncSession, external_ref: str) -> CreditLedger | None:
    result = await db.execute(select(CreditLedger).where(CreditLedger.external_ref == external_ref))
    return result.scalar_one_or_none()


async def deduct_credits(
    db: AsyncSession,
    company_id: str,
    amount: int,
    reason: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    external_ref: str | None = None,
) -> CreditLedger | None:
    """Compare-and-swap debit. Returns the ledger row, or None when the balance is too low."""
    result = await db.execute(
        update(Company)
        .where(Company.id == company_id, Company.credits_balance >= amount)
        .values(credits_balance=Company.credits_balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    new_balance = await get_balance(db, company_id)
    ledger = CreditLedger(
        company_id=company_id,
        amount=-amount,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        external_ref=external_ref,
        balance_after=new_balance,
    )
    db.add(ledger)
    await db.flush()
    return ledger


async def add_credits(
    db: AsyncSession,
    company_id: str,
    amount: int,
    reason: str = LEDGER_REASON_PURCHASE,
    external_ref: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
) -> tuple[int, bool]:
    """Add credits to the company balance. Returns (new balance, credited).

    With external_ref set, a replay of the same reference is a no-op.
    """
    if external_ref:
        existing = await get_ledger_entry(db, external_ref)
        if existing:
            return await get_balance(db, company_id), False
    await db.execute(
        update(Company)
        .where(Company.id == company_id)
        .values(credits_balance=Company.credits_balance + amount)
        .execution_options(synchronize_session=False)
    )
    new_balance = await get_balance(db, company_id)
    ledger = CreditLedger(
        company_id=company_id,
        amount=amount,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        external_ref=external_ref,
        balance_after=new_balance,
    )
    db.add(ledger)
    await db.flush()
    return new_balance, True


async def list_ledger(db: AsyncSession, company_id: str, limit: int = 50) -> list[CreditLedger]:
    result = await db.execute(
        select(CreditLedger)
        .where(CreditLedger.company_id == company_id)
        .order_by(CreditLedger.created_at.desc(), CreditLedger.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
