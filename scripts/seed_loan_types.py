"""
Seed the cooperative's loan products.
Run: python -m scripts.seed_loan_types (from the project root, with the DB reachable).
"""
import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import AsyncSessionLocal, init_db
from models import LoanType


LOAN_TYPES_DATA = [
    {
        "name": "Quick Loan",
        "description": "Short-term loan for urgent needs",
        "minimum_amount": Decimal("1000"),
        "maximum_amount": Decimal("10000"),
        "interest_rate": Decimal("7.5"),
        "duration_months": 4,
        "processing_fee_percentage": Decimal("2.5"),
        "requires_guarantor": False,
        "minimum_salary": Decimal("1000"),
        "max_rollover_times": 1,
    },
    {
        "name": "Flexi Loan",
        "description": "Flexible repayment over six months",
        "minimum_amount": Decimal("2000"),
        "maximum_amount": Decimal("25000"),
        "interest_rate": Decimal("7.0"),
        "duration_months": 6,
        "processing_fee_percentage": Decimal("2.0"),
        "requires_guarantor": False,
        "minimum_employment_months": 3,
        "minimum_salary": Decimal("2000"),
        "max_rollover_times": 2,
    },
    {
        "name": "Stable Loan (12 months)",
        "description": "Twelve-month loan at a low rate",
        "minimum_amount": Decimal("5000"),
        "maximum_amount": Decimal("50000"),
        "interest_rate": Decimal("5.0"),
        "duration_months": 12,
        "processing_fee_percentage": Decimal("1.5"),
        "requires_guarantor": False,
        "minimum_employment_months": 6,
        "minimum_salary": Decimal("3000"),
        "max_rollover_times": 1,
    },
    {
        "name": "Stable Loan (18 months)",
        "description": "Eighteen-month loan backed by one guarantor",
        "minimum_amount": Decimal("10000"),
        "maximum_amount": Decimal("75000"),
        "interest_rate": Decimal("7.0"),
        "duration_months": 18,
        "processing_fee_percentage": Decimal("2.0"),
        "requires_guarantor": True,
        "minimum_employment_months": 6,
        "minimum_salary": Decimal("4000"),
        "max_rollover_times": 1,
    },
    {
        "name": "Premium Loan",
        "description": "Large two-year loan backed by two guarantors",
        "minimum_amount": Decimal("20000"),
        "maximum_amount": Decimal("100000"),
        "interest_rate": Decimal("14.0"),
        "duration_months": 24,
        "processing_fee_percentage": Decimal("3.0"),
        "requires_guarantor": True,
        "guarantor_count": 2,
        "minimum_employment_months": 12,
        "minimum_salary": Decimal("5000"),
        "max_rollover_times": 2,
    },
    {
        "name": "Maxi Loan",
        "description": "Three-year loan for major investments",
        "minimum_amount": Decimal("30000"),
        "maximum_amount": Decimal("150000"),
        "interest_rate": Decimal("19.0"),
        "duration_months": 36,
        "processing_fee_percentage": Decimal("3.5"),
        "requires_guarantor": True,
        "guarantor_count": 2,
        "minimum_employment_months": 12,
        "minimum_salary": Decimal("6000"),
        "max_rollover_times": 1,
    },
]


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        for data in LOAN_TYPES_DATA:
            existing = await session.execute(select(LoanType).where(LoanType.name == data["name"]))
            if existing.scalar_one_or_none():
                print(f"Loan type {data['name']!r} already exists, skipping")
                continue
            session.add(LoanType(is_active=True, **data))
            print(f"Seeded loan type: {data['name']}")
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
