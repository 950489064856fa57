"""
HTTP surface: header-based principal, camelCase responses, error mapping and
the end-to-end guarantor verification flow.
Run: python -m unittest tests.test_api -v
"""
import unittest

import httpx

from database import get_db
from main import app
from models.enums import Role
from tests._support import DatabaseTestCase


class ApiTestCase(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.member, _ = await self.make_member("borrower@coop.test")
        self.friend, _ = await self.make_member("friend@coop.test")
        self.quick = await self.make_loan_type()
        self.guarded = await self.make_loan_type(
            name="Stable Loan (18 months)",
            minimum_amount=10000,
            maximum_amount=75000,
            interest_rate=7,
            duration_months=18,
            requires_guarantor=True,
            minimum_salary=4000,
            minimum_employment_months=6,
        )
        await self.session.commit()

        async def override_get_db():
            async with self.sessionmaker() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = override_get_db
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    def as_user(self, user, role=Role.MEMBER):
        return {"X-User-Id": str(user.id), "X-User-Role": role.value}

    @property
    def as_admin(self):
        return self.as_user(self.admin_user, Role.ADMIN)


class TestAuthAndErrors(ApiTestCase):
    async def test_health(self):
        resp = await self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    async def test_missing_principal(self):
        resp = await self.client.get("/api/loans")
        self.assertEqual(resp.status_code, 401)

    async def test_bad_role_header(self):
        resp = await self.client.get("/api/loans", headers={"X-User-Id": "1", "X-User-Role": "root"})
        self.assertEqual(resp.status_code, 401)

    async def test_admin_route_forbidden_for_member(self):
        resp = await self.client.get("/api/loans/pending", headers=self.as_user(self.member))
        self.assertEqual(resp.status_code, 403)

    async def test_domain_error_body(self):
        resp = await self.client.get("/api/loans/999", headers=self.as_user(self.member))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "not_found")


class TestCatalogApi(ApiTestCase):
    async def test_list_and_quote(self):
        resp = await self.client.get("/api/loan-types", headers=self.as_user(self.member))
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual([lt["name"] for lt in body], ["Quick Loan", "Stable Loan (18 months)"])
        self.assertEqual(body[1]["requiredGuarantorCount"], 1)

        resp = await self.client.post(
            f"/api/loan-types/{self.quick.id}/quote", json={"amount": 4000}, headers=self.as_user(self.member)
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["monthlyPayment"], 1025.0)

    async def test_available_flags_ineligible_products(self):
        resp = await self.client.get(
            "/api/loan-types/available",
            params={"monthlySalary": 1500, "monthsEmployed": 2},
            headers=self.as_user(self.member),
        )
        flags = {lt["name"]: lt["eligible"] for lt in resp.json()}
        self.assertEqual(flags, {"Quick Loan": True, "Stable Loan (18 months)": False})
        reasons = [lt["ineligibilityReasons"] for lt in resp.json() if not lt["eligible"]][0]
        self.assertEqual(len(reasons), 2)

    async def test_admin_creates_loan_type(self):
        payload = {
            "name": "Holiday Loan",
            "minimumAmount": 500,
            "maximumAmount": 5000,
            "interestRate": 6,
            "durationMonths": 6,
        }
        resp = await self.client.post("/api/loan-types", json=payload, headers=self.as_user(self.member))
        self.assertEqual(resp.status_code, 403)
        resp = await self.client.post("/api/loan-types", json=payload, headers=self.as_admin)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["durationMonths"], 6)


class TestApplicationApi(ApiTestCase):
    async def test_draft_to_loan(self):
        member = self.as_user(self.member)
        resp = await self.client.post(
            "/api/applications",
            json={"loanTypeId": self.quick.id, "requestedAmount": 5000, "requestedTenure": 4, "monthlySalary": 3000},
            headers=member,
        )
        self.assertEqual(resp.status_code, 201)
        app_id = resp.json()["id"]
        self.assertEqual(resp.json()["stage"], "personal_info")
        self.assertEqual(resp.json()["statusLabel"], "Draft")

        resp = await self.client.post(f"/api/applications/{app_id}/next-stage", headers=member)
        self.assertEqual(resp.json()["stage"], "employment")

        resp = await self.client.post(f"/api/applications/{app_id}/submit", headers=member)
        self.assertEqual(resp.json()["status"], "submitted")

        resp = await self.client.patch(f"/api/applications/{app_id}", json={"notes": "x"}, headers=member)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["error"], "immutable_state")

        await self.client.post(f"/api/applications/{app_id}/start-review", headers=self.as_admin)
        resp = await self.client.post(f"/api/applications/{app_id}/approve", headers=self.as_admin)
        self.assertEqual(resp.json()["status"], "approved")
        resp = await self.client.post(f"/api/applications/{app_id}/originate", headers=self.as_admin)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["status"], "approved")
        self.assertEqual(resp.json()["applicationId"], app_id)

    async def test_reject_reason_validated(self):
        resp = await self.client.post(
            "/api/applications",
            json={"loanTypeId": self.quick.id, "requestedAmount": 5000, "requestedTenure": 4},
            headers=self.as_user(self.member),
        )
        app_id = resp.json()["id"]
        resp = await self.client.post(f"/api/applications/{app_id}/reject", json={"reason": ""}, headers=self.as_admin)
        self.assertEqual(resp.status_code, 422)


class TestGuarantorFlowApi(ApiTestCase):
    async def test_end_to_end_guarantor_verification_and_repayment(self):
        borrower = self.as_user(self.member)
        friend = self.as_user(self.friend)

        resp = await self.client.post(
            "/api/loans", json={"loanTypeId": self.guarded.id, "amount": 12000, "tenure": 12}, headers=borrower
        )
        self.assertEqual(resp.status_code, 201)
        loan_id = resp.json()["id"]
        self.assertEqual(resp.json()["statusLabel"], "Pending Approval")

        resp = await self.client.post(f"/api/loans/{loan_id}/approve", headers=self.as_admin)
        self.assertEqual(resp.json()["status"], "approved")

        resp = await self.client.post(f"/api/loans/{loan_id}/disburse", headers=self.as_admin)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["error"], "guarantor_requirement_not_met")

        resp = await self.client.post(
            f"/api/loans/{loan_id}/guarantors",
            json={"guarantorEmail": "friend@coop.test", "relationship": "colleague"},
            headers=borrower,
        )
        self.assertEqual(resp.status_code, 201)
        token = resp.json()["invitationToken"]
        self.assertEqual(len(token), 64)

        resp = await self.client.post(
            f"/api/loans/{loan_id}/guarantors",
            json={"guarantorEmail": "friend@coop.test", "relationship": "colleague"},
            headers=borrower,
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["error"], "duplicate_pending_invitation")

        resp = await self.client.get(f"/api/loans/{loan_id}/guarantors", headers=borrower)
        self.assertNotIn(token, resp.text)

        resp = await self.client.post(
            f"/api/guarantor-invitations/{token}/accept", json={"guarantorEmail": "friend@coop.test"}
        )
        self.assertEqual(resp.json()["confirmationStatus"], "accepted")

        resp = await self.client.post("/api/qr/generate", json={"loanId": loan_id}, headers=borrower)
        self.assertEqual(resp.status_code, 201)
        qr_token = resp.json()["qrToken"]

        resp = await self.client.get(f"/api/qr/tokens/{loan_id}", headers=borrower)
        self.assertEqual(len(resp.json()), 1)
        self.assertNotIn(qr_token, resp.text)

        scan = {"qrToken": qr_token, "guarantorId": self.friend.id}
        resp = await self.client.post("/api/qr/validate", json=scan, headers=friend)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["guarantor"]["verificationStatus"], "verified")
        self.assertEqual(resp.json()["qrToken"]["status"], "used")

        resp = await self.client.post("/api/qr/validate", json=scan, headers=friend)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["error"], "token_not_usable")
        self.assertEqual(resp.json()["context"]["reason"], "invalid_status")

        resp = await self.client.get("/api/guarantor/my-obligations", headers=friend)
        self.assertEqual([o["loan"]["id"] for o in resp.json()], [loan_id])

        resp = await self.client.post(f"/api/loans/{loan_id}/disburse", headers=self.as_admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "active")

        resp = await self.client.post(f"/api/loans/{loan_id}/disburse", headers=self.as_admin)
        self.assertEqual(resp.status_code, 409)

        resp = await self.client.post(f"/api/loans/{loan_id}/payments", json={"amount": 12000}, headers=borrower)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["loan"]["outstandingBalance"], 0.0)
        self.assertEqual(resp.json()["loan"]["status"], "completed")

        resp = await self.client.get(f"/api/loans/{loan_id}/payments", headers=borrower)
        self.assertEqual(len(resp.json()), 1)

    async def test_qr_duration_out_of_range(self):
        resp = await self.client.post(
            "/api/loans", json={"loanTypeId": self.quick.id, "amount": 2000, "tenure": 4},
            headers=self.as_user(self.member),
        )
        loan_id = resp.json()["id"]
        resp = await self.client.post(
            "/api/qr/generate", json={"loanId": loan_id, "durationMinutes": 2}, headers=self.as_user(self.member)
        )
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["error"], "validation_error")


if __name__ == "__main__":
    unittest.main()
