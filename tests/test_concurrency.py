"""
Interleaved sessions: a session holding stale rows loses to a commit made in
between, and the guarded writes leave paired records consistent.
Run: python -m unittest tests.test_concurrency -v
"""
import unittest

from sqlalchemy import func, select

from models import Guarantor, GuarantorInvitation, Loan, LoanTransaction, QRToken
from models.enums import ConfirmationStatus, InvitationStatus, LoanStatus, QRTokenStatus, VerificationStatus
from services import guarantors as recruitment
from services import loans as lifecycle
from services import qr_tokens
from services.errors import AlreadyProcessedError, ConcurrencyConflictError, InvalidStateError
from tests._support import SharedDatabaseTestCase


class TestInvitationAnswerRace(SharedDatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        loan_type = await self.make_loan_type(name="Stable 18", requires_guarantor=True)
        member, principal = await self.make_member()
        loan = await self.make_loan(member, loan_type, status=LoanStatus.APPROVED)
        invited = await recruitment.invite_guarantor(self.session, principal, loan.id, "friend@coop.test", "friend")
        self.token = invited.token
        self.guarantor_id = invited.guarantor.id
        await self.session.commit()

    async def _stored(self):
        async with self.sessionmaker() as fresh:
            guarantor = await fresh.get(Guarantor, self.guarantor_id)
            result = await fresh.execute(
                select(GuarantorInvitation).where(GuarantorInvitation.invitation_token == self.token)
            )
            return guarantor, result.scalar_one()

    async def test_decline_after_concurrent_accept_fails(self):
        async with self.sessionmaker() as late:
            # Pending row cached before the other answer lands.
            await late.execute(select(Guarantor).where(Guarantor.qr_code_token == self.token))

            async with self.sessionmaker() as first:
                await recruitment.accept_invitation(first, self.token, "friend@coop.test")
                await first.commit()

            with self.assertRaises(AlreadyProcessedError):
                await recruitment.decline_invitation(late, self.token)
            await late.rollback()

        guarantor, invitation = await self._stored()
        self.assertEqual(guarantor.confirmation_status, ConfirmationStatus.ACCEPTED)
        self.assertEqual(invitation.status, InvitationStatus.ACCEPTED)
        self.assertIsNone(guarantor.invitation_declined_at)

    async def test_accept_after_concurrent_decline_fails(self):
        async with self.sessionmaker() as late:
            await late.execute(select(Guarantor).where(Guarantor.qr_code_token == self.token))

            async with self.sessionmaker() as first:
                await recruitment.decline_invitation(first, self.token)
                await first.commit()

            with self.assertRaises(AlreadyProcessedError):
                await recruitment.accept_invitation(late, self.token, "friend@coop.test")
            await late.rollback()

        guarantor, invitation = await self._stored()
        self.assertEqual(guarantor.confirmation_status, ConfirmationStatus.DECLINED)
        self.assertEqual(invitation.status, InvitationStatus.DECLINED)
        self.assertIsNone(guarantor.invitation_accepted_at)


class TestQRScanRace(SharedDatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        loan_type = await self.make_loan_type(name="Stable 18", requires_guarantor=True)
        member, principal = await self.make_member()
        loan = await self.make_loan(member, loan_type)
        self.guarantor_user, self.guarantor_principal = await self.make_member("g7@coop.test")
        self.guarantor = await self.make_guarantor(loan, self.guarantor_user)
        generated = await qr_tokens.generate_qr_token(self.session, principal, loan.id)
        self.token = generated.token
        self.record_id = generated.record.id
        await self.session.commit()

    async def test_second_scan_loses_on_consume(self):
        async with self.sessionmaker() as late:
            # Token and guarantor both cached as usable.
            await late.execute(select(QRToken).where(QRToken.token == self.token))
            await late.get(Guarantor, self.guarantor.id)

            async with self.sessionmaker() as first:
                await qr_tokens.validate_qr_token(
                    first, self.guarantor_principal, self.token, self.guarantor_user.id
                )
                await first.commit()

            with self.assertRaises(ConcurrencyConflictError):
                await qr_tokens.validate_qr_token(
                    late, self.guarantor_principal, self.token, self.guarantor_user.id
                )
            await late.rollback()

        async with self.sessionmaker() as fresh:
            record = await fresh.get(QRToken, self.record_id)
            guarantor = await fresh.get(Guarantor, self.guarantor.id)
        self.assertEqual(record.status, QRTokenStatus.USED)
        self.assertEqual(record.scanned_by, self.guarantor_user.id)
        self.assertEqual(guarantor.verification_status, VerificationStatus.VERIFIED)
        self.assertEqual(self.audit_sink.actions().count("guarantor.verify_qr"), 1)


class TestDisbursementRace(SharedDatabaseTestCase):
    async def test_stale_second_disburse_fails(self):
        loan_type = await self.make_loan_type()
        member, _ = await self.make_member()
        loan = await self.make_loan(member, loan_type, status=LoanStatus.APPROVED)
        await self.session.commit()

        async with self.sessionmaker() as late:
            cached = await late.get(Loan, loan.id)
            self.assertEqual(cached.status, LoanStatus.APPROVED)

            async with self.sessionmaker() as first:
                await lifecycle.disburse_loan(first, self.admin, loan.id)
                await first.commit()

            with self.assertRaises(InvalidStateError):
                await lifecycle.disburse_loan(late, self.admin, loan.id)
            await late.rollback()

        async with self.sessionmaker() as fresh:
            result = await fresh.execute(
                select(func.count(LoanTransaction.id)).where(LoanTransaction.loan_id == loan.id)
            )
            self.assertEqual(result.scalar_one(), 1)
            stored = await fresh.get(Loan, loan.id)
        self.assertEqual(stored.status, LoanStatus.ACTIVE)
        self.assertEqual(self.audit_sink.actions().count("loan.disburse"), 1)


if __name__ == "__main__":
    unittest.main()
