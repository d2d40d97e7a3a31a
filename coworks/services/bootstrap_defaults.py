from __future__ import annotations

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from coworks.models.resource import SeatingType, SeatingTypeName

# name -> (short_code, hourly_rate, coin_billing)
DEFAULT_SEATING_TYPES = {
    SeatingTypeName.HOT_DESK: ("HD", Decimal("50.00"), False),
    SeatingTypeName.DEDICATED_DESK: ("DD", Decimal("80.00"), False),
    SeatingTypeName.CUBICLE: ("CU", Decimal("120.00"), False),
    SeatingTypeName.MEETING_ROOM: ("MR", Decimal("50.00"), True),
    SeatingTypeName.DAILY_PASS: ("DP", Decimal("40.00"), False),
}


async def ensure_default_seating_types(db: AsyncSession) -> None:
    existing = set((await db.execute(select(SeatingType.name))).scalars().all())
    for name, (code, rate, coins) in DEFAULT_SEATING_TYPES.items():
        if name not in existing:
            db.add(SeatingType(name=name, short_code=code, hourly_rate=rate, coin_billing=coins))
