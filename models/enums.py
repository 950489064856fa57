"""
Closed status vocabularies shared by SQLAlchemy models, services and API responses.

Every enum has a table in STATUS_LABELS (and, for badged statuses, BADGE_COLORS);
tests assert the tables are exhaustive.
"""
import enum


class Role(str, enum.Enum):
    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def elevated(cls) -> frozenset["Role"]:
        return frozenset({cls.ADMIN, cls.SUPER_ADMIN})


class ApplicationStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"

    @classmethod
    def terminal(cls) -> frozenset["ApplicationStatus"]:
        return frozenset({cls.COMPLETED, cls.REJECTED, cls.WITHDRAWN})


class ApplicationStage(str, enum.Enum):
    PERSONAL_INFO = "personal_info"
    EMPLOYMENT = "employment"
    FINANCIAL = "financial"
    GUARANTORS = "guarantors"
    DOCUMENTS = "documents"
    REVIEW = "review"

    @classmethod
    def ordered(cls) -> list["ApplicationStage"]:
        return [
            cls.PERSONAL_INFO,
            cls.EMPLOYMENT,
            cls.FINANCIAL,
            cls.GUARANTORS,
            cls.DOCUMENTS,
            cls.REVIEW,
        ]

    def next(self) -> "ApplicationStage":
        """Following stage; REVIEW is its own successor."""
        stages = self.ordered()
        index = stages.index(self)
        return stages[min(index + 1, len(stages) - 1)]


class EmploymentStatus(str, enum.Enum):
    EMPLOYED = "employed"
    SELF_EMPLOYED = "self_employed"
    UNEMPLOYED = "unemployed"


class LoanStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"
    SUSPENDED = "suspended"

    @classmethod
    def valid_transitions(cls) -> dict["LoanStatus", frozenset["LoanStatus"]]:
        return {
            cls.PENDING: frozenset({cls.APPROVED, cls.REJECTED}),
            cls.APPROVED: frozenset({cls.ACTIVE}),
            cls.REJECTED: frozenset(),
            cls.ACTIVE: frozenset({cls.COMPLETED, cls.DEFAULTED, cls.SUSPENDED}),
            cls.SUSPENDED: frozenset({cls.ACTIVE}),
            cls.COMPLETED: frozenset(),
            cls.DEFAULTED: frozenset(),
        }

    def can_transition_to(self, target: "LoanStatus") -> bool:
        return target in self.valid_transitions()[self]

    @classmethod
    def qr_eligible(cls) -> frozenset["LoanStatus"]:
        return frozenset({cls.PENDING, cls.APPROVED, cls.ACTIVE})


class TransactionType(str, enum.Enum):
    DISBURSEMENT = "disbursement"
    PAYMENT = "payment"


class GuarantorRelationship(str, enum.Enum):
    FRIEND = "friend"
    FAMILY = "family"
    COLLEAGUE = "colleague"
    BUSINESS_PARTNER = "business_partner"


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ConfirmationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    REVOKED = "revoked"


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class QRTokenStatus(str, enum.Enum):
    ACTIVE = "active"
    USED = "used"
    REVOKED = "revoked"
    EXPIRED = "expired"


# Keyed by enum class first: members of different str-enums with the same
# value ("pending") compare equal, so one flat dict would collide.
STATUS_LABELS: dict[type[enum.Enum], dict[enum.Enum, str]] = {
    ApplicationStatus: {
        ApplicationStatus.DRAFT: "Draft",
        ApplicationStatus.SUBMITTED: "Submitted",
        ApplicationStatus.UNDER_REVIEW: "Under Review",
        ApplicationStatus.APPROVED: "Approved",
        ApplicationStatus.REJECTED: "Rejected",
        ApplicationStatus.WITHDRAWN: "Withdrawn",
        ApplicationStatus.COMPLETED: "Completed",
    },
    ApplicationStage: {
        ApplicationStage.PERSONAL_INFO: "Personal Information",
        ApplicationStage.EMPLOYMENT: "Employment",
        ApplicationStage.FINANCIAL: "Financial Details",
        ApplicationStage.GUARANTORS: "Guarantors",
        ApplicationStage.DOCUMENTS: "Documents",
        ApplicationStage.REVIEW: "Review",
    },
    LoanStatus: {
        LoanStatus.PENDING: "Pending Approval",
        LoanStatus.APPROVED: "Approved",
        LoanStatus.REJECTED: "Rejected",
        LoanStatus.ACTIVE: "Active",
        LoanStatus.COMPLETED: "Completed",
        LoanStatus.DEFAULTED: "Defaulted",
        LoanStatus.SUSPENDED: "Suspended",
    },
    GuarantorRelationship: {
        GuarantorRelationship.FRIEND: "Friend",
        GuarantorRelationship.FAMILY: "Family Member",
        GuarantorRelationship.COLLEAGUE: "Colleague",
        GuarantorRelationship.BUSINESS_PARTNER: "Business Partner",
    },
    VerificationStatus: {
        VerificationStatus.PENDING: "Pending Review",
        VerificationStatus.VERIFIED: "Verified",
        VerificationStatus.REJECTED: "Rejected",
        VerificationStatus.EXPIRED: "Verification Expired",
    },
    ConfirmationStatus: {
        ConfirmationStatus.PENDING: "Awaiting Response",
        ConfirmationStatus.ACCEPTED: "Accepted",
        ConfirmationStatus.DECLINED: "Declined",
        ConfirmationStatus.REVOKED: "Revoked",
    },
    InvitationStatus: {
        InvitationStatus.PENDING: "Pending",
        InvitationStatus.ACCEPTED: "Accepted",
        InvitationStatus.DECLINED: "Declined",
        InvitationStatus.EXPIRED: "Expired",
    },
    QRTokenStatus: {
        QRTokenStatus.ACTIVE: "Active",
        QRTokenStatus.USED: "Used",
        QRTokenStatus.REVOKED: "Revoked",
        QRTokenStatus.EXPIRED: "Expired",
    },
}

BADGE_COLORS: dict[type[enum.Enum], dict[enum.Enum, str]] = {
    ApplicationStatus: {
        ApplicationStatus.DRAFT: "secondary",
        ApplicationStatus.SUBMITTED: "info",
        ApplicationStatus.UNDER_REVIEW: "warning",
        ApplicationStatus.APPROVED: "success",
        ApplicationStatus.REJECTED: "danger",
        ApplicationStatus.WITHDRAWN: "secondary",
        ApplicationStatus.COMPLETED: "success",
    },
    LoanStatus: {
        LoanStatus.PENDING: "warning",
        LoanStatus.APPROVED: "info",
        LoanStatus.REJECTED: "danger",
        LoanStatus.ACTIVE: "success",
        LoanStatus.COMPLETED: "secondary",
        LoanStatus.DEFAULTED: "danger",
        LoanStatus.SUSPENDED: "warning",
    },
    VerificationStatus: {
        VerificationStatus.PENDING: "info",
        VerificationStatus.VERIFIED: "success",
        VerificationStatus.REJECTED: "danger",
        VerificationStatus.EXPIRED: "warning",
    },
    ConfirmationStatus: {
        ConfirmationStatus.PENDING: "warning",
        ConfirmationStatus.ACCEPTED: "success",
        ConfirmationStatus.DECLINED: "danger",
        ConfirmationStatus.REVOKED: "secondary",
    },
    InvitationStatus: {
        InvitationStatus.PENDING: "warning",
        InvitationStatus.ACCEPTED: "success",
        InvitationStatus.DECLINED: "danger",
        InvitationStatus.EXPIRED: "secondary",
    },
    QRTokenStatus: {
        QRTokenStatus.ACTIVE: "success",
        QRTokenStatus.USED: "info",
        QRTokenStatus.REVOKED: "secondary",
        QRTokenStatus.EXPIRED: "warning",
    },
}


def label_for(value: enum.Enum) -> str:
    return STATUS_LABELS[type(value)][value]


def badge_color_for(value: enum.Enum) -> str:
    return BADGE_COLORS[type(value)][value]
