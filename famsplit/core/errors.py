"""
Domain error taxonomy.

Services raise these instead of HTTPException so they stay usable outside a
request; main.py maps every DomainError to a JSON response carrying its
status_code and detail.
"""

from __future__ import annotations


class DomainError(Exception):
    status_code = 400
    default_detail = "request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(DomainError):
    status_code = 400
    default_detail = "invalid input"


class AuthenticationError(DomainError):
    status_code = 401
    default_detail = "authentication required"


class AuthorizationError(DomainError):
    status_code = 403
    default_detail = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    default_detail = "not found"


class ConflictError(DomainError):
    status_code = 409
    default_detail = "conflict"


class InvariantViolation(DomainError):
    status_code = 400
    default_detail = "ledger invariant violated"


class StorageError(DomainError):
    status_code = 500
    default_detail = "internal server error"


# Split calculator
class InvalidSplitType(ValidationError):
    default_detail = "split_type must be one of: equal, percentage, manual"


class InvalidSplitInput(ValidationError):
    default_detail = "invalid split_details"


# Expense ledger
class PayerNotActiveMember(ValidationError):
    default_detail = "paying member does not exist or is not active in this family"


class NoActiveMembers(ValidationError):
    default_detail = "family has no active members to split with"


# Settlement engine
class InvalidSettlement(ValidationError):
    default_detail = "payer, receiver and a positive amount are required"


class MemberNotActive(ValidationError):
    default_detail = "one or both members are not active in this family"


class SelfSettlement(InvariantViolation):
    default_detail = "payer and receiver must be different members"


# Access
class Forbidden(AuthorizationError):
    pass


class NotAMember(AuthorizationError):
    default_detail = "not a member of this family"


class LastAdminRemoval(InvariantViolation):
    status_code = 403
    default_detail = "cannot remove the last active admin of the family; promote another admin first"
