"""
Loan type catalog: lookups, eligibility pre-checks, quotes and admin upkeep.
Run: python -m unittest tests.test_loan_types -v
"""
import unittest
from decimal import Decimal

from services import loan_types as catalog
from services.errors import AuthorizationError, NotFoundError, ValidationError
from services.identity import Principal
from tests._support import DatabaseTestCase


class TestEligibility(unittest.TestCase):
    def _loan_type(self, **kw):
        from models import LoanType

        values = {"name": "Flexi", "minimum_salary": Decimal("2000"), "minimum_employment_months": 3}
        values.update(kw)
        return LoanType(**values)

    def test_meets_thresholds(self):
        profile = catalog.ApplicantProfile(monthly_salary=Decimal("2500"), months_employed=4)
        self.assertTrue(catalog.is_user_eligible(self._loan_type(), profile))

    def test_salary_below_minimum(self):
        profile = catalog.ApplicantProfile(monthly_salary=Decimal("1500"), months_employed=12)
        reasons = catalog.eligibility_reasons(self._loan_type(), profile)
        self.assertEqual(len(reasons), 1)
        self.assertIn("salary", reasons[0].lower())

    def test_missing_profile_fails_when_minimums_set(self):
        reasons = catalog.eligibility_reasons(self._loan_type(), catalog.ApplicantProfile())
        self.assertEqual(len(reasons), 2)

    def test_no_thresholds_means_eligible(self):
        lt = self._loan_type(minimum_salary=None, minimum_employment_months=None)
        self.assertTrue(catalog.is_user_eligible(lt, catalog.ApplicantProfile()))


class TestCatalog(DatabaseTestCase):
    async def test_active_types_ordered_by_minimum_amount(self):
        await self.make_loan_type(name="Maxi", minimum_amount=Decimal("30000"), maximum_amount=Decimal("150000"))
        await self.make_loan_type(name="Quick")
        await self.make_loan_type(name="Retired", is_active=False)
        names = [lt.name for lt in await catalog.list_active_loan_types(self.session)]
        self.assertEqual(names, ["Quick", "Maxi"])
        all_names = [lt.name for lt in await catalog.list_loan_types(self.session, include_inactive=True)]
        self.assertIn("Retired", all_names)

    async def test_required_guarantor_count(self):
        plain = await self.make_loan_type(name="Plain")
        one = await self.make_loan_type(name="One", requires_guarantor=True)
        two = await self.make_loan_type(name="Two", requires_guarantor=True, guarantor_count=2)
        self.assertEqual(plain.required_guarantor_count, 0)
        self.assertEqual(one.required_guarantor_count, 1)
        self.assertEqual(two.required_guarantor_count, 2)

    async def test_quote(self):
        lt = await self.make_loan_type()
        q = catalog.quote(lt, Decimal("4000"), 4)
        self.assertEqual(q.total_interest, Decimal("100.00"))
        self.assertEqual(q.monthly_payment, Decimal("1025.00"))
        self.assertEqual(q.processing_fee, Decimal("100.00"))
        self.assertEqual(q.total_payment, Decimal("4200.00"))

    async def test_quote_rejects_out_of_range_amount(self):
        lt = await self.make_loan_type()
        with self.assertRaises(ValidationError):
            catalog.quote(lt, Decimal("20000"), 4)

    async def test_create_requires_admin(self):
        member, principal = await self.make_member()
        with self.assertRaises(AuthorizationError):
            await catalog.create_loan_type(self.session, principal, {"name": "X"})

    async def test_create_validates_range(self):
        with self.assertRaises(ValidationError):
            await catalog.create_loan_type(
                self.session,
                self.admin,
                {
                    "name": "Broken",
                    "minimum_amount": Decimal("500"),
                    "maximum_amount": Decimal("100"),
                    "interest_rate": Decimal("5"),
                    "duration_months": 6,
                },
            )

    async def test_create_update_and_soft_delete(self):
        lt = await catalog.create_loan_type(
            self.session,
            self.admin,
            {
                "name": "Holiday Loan",
                "minimum_amount": Decimal("500"),
                "maximum_amount": Decimal("5000"),
                "interest_rate": Decimal("6"),
                "duration_months": 6,
            },
        )
        updated = await catalog.update_loan_type(self.session, self.admin, lt.id, {"interest_rate": Decimal("6.5")})
        self.assertEqual(updated.interest_rate, Decimal("6.5"))

        await catalog.deactivate_loan_type(self.session, self.admin, lt.id)
        with self.assertRaises(NotFoundError):
            await catalog.get_loan_type(self.session, lt.id)
        self.assertEqual(
            self.audit_sink.actions(), ["loan_type.create", "loan_type.update", "loan_type.delete"]
        )

    async def test_duplicate_name_rejected(self):
        await self.make_loan_type(name="Quick Loan")
        with self.assertRaises(ValidationError):
            await catalog.create_loan_type(
                self.session,
                Principal(self.admin_user.id, self.admin.role),
                {
                    "name": "Quick Loan",
                    "minimum_amount": Decimal("1"),
                    "maximum_amount": Decimal("2"),
                    "interest_rate": Decimal("1"),
                    "duration_months": 1,
                },
            )


if __name__ == "__main__":
    unittest.main()
