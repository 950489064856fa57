"""
Loan lifecycle: apply, approve/reject, guarantor-gated disbursement, admin transitions.
Run: python -m unittest tests.test_loans -v
"""
import unittest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func, select

from models import LoanTransaction
from models.enums import ConfirmationStatus, LoanStatus, TransactionType, VerificationStatus
from services import loans as lifecycle
from services.errors import (
    AuthorizationError,
    EligibilityError,
    GuarantorRequirementNotMetError,
    InvalidStateError,
    ValidationError,
)
from tests._support import DatabaseTestCase


class LoanTestCase(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.loan_type = await self.make_loan_type()
        self.member, self.principal = await self.make_member()

    async def _transactions(self, loan_id):
        result = await self.session.execute(
            select(func.count(LoanTransaction.id)).where(LoanTransaction.loan_id == loan_id)
        )
        return result.scalar_one()


class TestApply(LoanTestCase):
    async def test_apply_creates_pending_loan_with_figures(self):
        loan = await lifecycle.apply_for_loan(self.session, self.principal, self.loan_type.id, Decimal("4000"), 4)
        self.assertEqual(loan.status, LoanStatus.PENDING)
        self.assertEqual(loan.total_interest, Decimal("100.00"))
        self.assertEqual(loan.monthly_payment, Decimal("1025.00"))
        self.assertEqual(loan.outstanding_balance, Decimal("4000.00"))

    async def test_apply_requires_kyc(self):
        _, unverified = await self.make_member("nokyc@coop.test", kyc_verified=False)
        with self.assertRaises(EligibilityError):
            await lifecycle.apply_for_loan(self.session, unverified, self.loan_type.id, Decimal("4000"), 4)

    async def test_apply_checks_amount_range(self):
        with self.assertRaises(ValidationError):
            await lifecycle.apply_for_loan(self.session, self.principal, self.loan_type.id, Decimal("500"), 4)

    async def test_apply_checks_tenure(self):
        with self.assertRaises(ValidationError):
            await lifecycle.apply_for_loan(self.session, self.principal, self.loan_type.id, Decimal("4000"), 0)


class TestApproval(LoanTestCase):
    async def test_approve(self):
        loan = await self.make_loan(self.member, self.loan_type)
        loan = await lifecycle.approve_loan(self.session, self.admin, loan.id)
        self.assertEqual(loan.status, LoanStatus.APPROVED)
        self.assertEqual(loan.approved_by, self.admin_user.id)
        self.assertIsNotNone(loan.approved_at)
        self.assertEqual(self.audit_sink.records[-1]["before"]["status"], "pending")

    async def test_reapprove_fails(self):
        loan = await self.make_loan(self.member, self.loan_type)
        await lifecycle.approve_loan(self.session, self.admin, loan.id)
        with self.assertRaises(InvalidStateError):
            await lifecycle.approve_loan(self.session, self.admin, loan.id)

    async def test_member_cannot_approve(self):
        loan = await self.make_loan(self.member, self.loan_type)
        with self.assertRaises(AuthorizationError):
            await lifecycle.approve_loan(self.session, self.principal, loan.id)

    async def test_reject_needs_reason_and_pending(self):
        loan = await self.make_loan(self.member, self.loan_type)
        with self.assertRaises(ValidationError):
            await lifecycle.reject_loan(self.session, self.admin, loan.id, "")
        loan = await lifecycle.reject_loan(self.session, self.admin, loan.id, "Insufficient savings")
        self.assertEqual(loan.status, LoanStatus.REJECTED)
        with self.assertRaises(InvalidStateError):
            await lifecycle.reject_loan(self.session, self.admin, loan.id, "again")


class TestDisbursement(LoanTestCase):
    async def test_disburse_without_guarantor_requirement(self):
        loan = await self.make_loan(self.member, self.loan_type, status=LoanStatus.APPROVED)
        loan = await lifecycle.disburse_loan(self.session, self.admin, loan.id)
        self.assertEqual(loan.status, LoanStatus.ACTIVE)
        self.assertIsNotNone(loan.disbursed_at)
        self.assertGreater(loan.next_payment_date, loan.disbursed_at + timedelta(days=27))
        result = await self.session.execute(select(LoanTransaction).where(LoanTransaction.loan_id == loan.id))
        transactions = result.scalars().all()
        self.assertEqual(len(transactions), 1)
        self.assertEqual(transactions[0].type, TransactionType.DISBURSEMENT)
        self.assertEqual(transactions[0].amount, loan.amount)

    async def test_second_disburse_fails_and_writes_nothing(self):
        loan = await self.make_loan(self.member, self.loan_type, status=LoanStatus.APPROVED)
        await lifecycle.disburse_loan(self.session, self.admin, loan.id)
        with self.assertRaises(InvalidStateError):
            await lifecycle.disburse_loan(self.session, self.admin, loan.id)
        self.assertEqual(await self._transactions(loan.id), 1)

    async def test_disburse_pending_loan_fails(self):
        loan = await self.make_loan(self.member, self.loan_type)
        with self.assertRaises(InvalidStateError):
            await lifecycle.disburse_loan(self.session, self.admin, loan.id)

    async def test_guarantor_gate(self):
        guarded = await self.make_loan_type(name="Premium", requires_guarantor=True, guarantor_count=2)
        loan = await self.make_loan(self.member, guarded, status=LoanStatus.APPROVED)
        g1 = await self.make_user("g1@coop.test")
        g2 = await self.make_user("g2@coop.test")
        await self.make_guarantor(loan, g1, ConfirmationStatus.ACCEPTED, VerificationStatus.VERIFIED)
        # Confirmed but not yet verified: does not count.
        await self.make_guarantor(loan, g2, ConfirmationStatus.ACCEPTED, VerificationStatus.PENDING)

        with self.assertRaises(GuarantorRequirementNotMetError) as ctx:
            await lifecycle.disburse_loan(self.session, self.admin, loan.id)
        self.assertEqual((ctx.exception.required, ctx.exception.actual), (2, 1))
        self.assertEqual(await self._transactions(loan.id), 0)

        g3 = await self.make_user("g3@coop.test")
        await self.make_guarantor(loan, g3, ConfirmationStatus.ACCEPTED, VerificationStatus.VERIFIED)
        loan = await lifecycle.disburse_loan(self.session, self.admin, loan.id)
        self.assertEqual(loan.status, LoanStatus.ACTIVE)

    async def test_verified_but_declined_guarantor_does_not_count(self):
        guarded = await self.make_loan_type(name="Stable 18", requires_guarantor=True)
        loan = await self.make_loan(self.member, guarded, status=LoanStatus.APPROVED)
        g = await self.make_user("g@coop.test")
        await self.make_guarantor(loan, g, ConfirmationStatus.DECLINED, VerificationStatus.VERIFIED)
        self.assertEqual(await lifecycle.count_active_guarantors(self.session, loan.id), 0)
        with self.assertRaises(GuarantorRequirementNotMetError):
            await lifecycle.disburse_loan(self.session, self.admin, loan.id)


class TestAdminTransitions(LoanTestCase):
    async def test_suspend_and_reactivate(self):
        loan = await self.make_loan(self.member, self.loan_type, status=LoanStatus.ACTIVE)
        loan = await lifecycle.suspend_loan(self.session, self.admin, loan.id)
        self.assertEqual(loan.status, LoanStatus.SUSPENDED)
        loan = await lifecycle.reactivate_loan(self.session, self.admin, loan.id)
        self.assertEqual(loan.status, LoanStatus.ACTIVE)

    async def test_default_only_from_active(self):
        loan = await self.make_loan(self.member, self.loan_type, status=LoanStatus.APPROVED)
        with self.assertRaises(InvalidStateError):
            await lifecycle.mark_defaulted(self.session, self.admin, loan.id)


class TestReads(LoanTestCase):
    async def test_guarantor_can_view_loan(self):
        loan = await self.make_loan(self.member, self.loan_type)
        guarantor_user, guarantor_principal = await self.make_member("g@coop.test")
        _, stranger = await self.make_member("stranger@coop.test")
        await self.make_guarantor(loan, guarantor_user)

        self.assertEqual((await lifecycle.get_loan(self.session, guarantor_principal, loan.id)).id, loan.id)
        with self.assertRaises(AuthorizationError):
            await lifecycle.get_loan(self.session, stranger, loan.id)

    async def test_pending_queue_and_my_loans(self):
        pending = await self.make_loan(self.member, self.loan_type)
        await self.make_loan(self.member, self.loan_type, status=LoanStatus.ACTIVE)
        self.assertEqual([loan.id for loan in await lifecycle.list_pending_loans(self.session, self.admin)], [pending.id])
        self.assertEqual(len(await lifecycle.list_my_loans(self.session, self.principal)), 2)

    async def test_schedule_matches_loan_figures(self):
        loan = await self.make_loan(self.member, self.loan_type, amount="4000", tenure=4)
        schedule = lifecycle.repayment_schedule(loan)
        self.assertEqual(len(schedule), 4)
        self.assertEqual(sum(i.payment for i in schedule), loan.amount + loan.total_interest)


if __name__ == "__main__":
    unittest.main()
