"""Ledger error taxonomy.

Every error is raised before any write reaches the ledger state, so a
caller that catches one can rely on the pre-call state being intact.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for rejected ledger operations."""

    code: str = "LedgerError"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class InvalidAddress(LedgerError):
    code = "InvalidAddress"

    def __init__(self, field: str, value: Any = None):
        super().__init__(f"invalid address for {field}", field=field, value=value)


class InvalidAmount(LedgerError):
    code = "InvalidAmount"

    def __init__(self, field: str, value: Any = None):
        super().__init__(f"invalid amount for {field}", field=field, value=value)


class ExceedsMaxSupply(LedgerError):
    code = "ExceedsMaxSupply"

    def __init__(self, requested: int, total_supply: int, max_supply: int):
        super().__init__(
            f"mint of {requested} would exceed max supply "
            f"({total_supply} + {requested} > {max_supply})",
            requested=requested,
            total_supply=total_supply,
            max_supply=max_supply,
        )


class Unauthorized(LedgerError):
    code = "Unauthorized"

    def __init__(self, account: str, role: str):
        super().__init__(f"account {account} is missing role {role}", account=account, role=role)
        self.account = account
        self.role = role


class InsufficientBalance(LedgerError):
    code = "InsufficientBalance"

    def __init__(self, account: str, balance: int, needed: int):
        super().__init__(
            f"balance of {account} is {balance}, needed {needed}",
            account=account,
            balance=balance,
            needed=needed,
        )


class InsufficientAllowance(LedgerError):
    code = "InsufficientAllowance"

    def __init__(self, spender: str, allowance: int, needed: int):
        super().__init__(
            f"allowance of {spender} is {allowance}, needed {needed}",
            spender=spender,
            allowance=allowance,
            needed=needed,
        )


class EnforcedPause(LedgerError):
    code = "EnforcedPause"

    def __init__(self, operation: Optional[str] = None):
        message = "ledger is paused"
        if operation:
            message = f"{operation} rejected: ledger is paused"
        super().__init__(message, operation=operation)


class ExpectedPause(LedgerError):
    code = "ExpectedPause"

    def __init__(self) -> None:
        super().__init__("ledger is not paused")


class AlreadyInitialized(LedgerError):
    code = "AlreadyInitialized"

    def __init__(self) -> None:
        super().__init__("ledger is already initialized")


class NotInitialized(LedgerError):
    code = "NotInitialized"

    def __init__(self, operation: str):
        super().__init__(f"{operation} called before initialize", operation=operation)


class IncompatibleLayout(LedgerError):
    code = "IncompatibleLayout"

    def __init__(self, reason: str):
        super().__init__(f"incompatible storage layout: {reason}", reason=reason)


class UnsupportedOperation(LedgerError):
    code = "UnsupportedOperation"

    def __init__(self, operation: str, version: int):
        super().__init__(
            f"{operation} is not provided by logic version {version}",
            operation=operation,
            version=version,
        )


class UnknownRole(LedgerError, ValueError):
    code = "UnknownRole"

    def __init__(self, value: Any):
        super().__init__(f"unknown role: {value}", value=str(value))
