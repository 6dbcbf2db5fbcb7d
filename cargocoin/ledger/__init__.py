"""
CargoCoin ledger core.

Provides:
- LedgerProxy: the upgradeable ledger callers hold
- LedgerLogicV1 / LedgerLogicV2: stateless logic versions
- LedgerState and StorageLayout: persistent state and its append-only layout
- EventLog: ordered, append-only event output
- RoleRegistry: role membership behind the privileged operations
"""

from .addresses import (
    MAX_UINT256,
    ZERO_ADDRESS,
    Address,
    address_from_label,
    normalize_address,
)
from .errors import (
    AlreadyInitialized,
    EnforcedPause,
    ExceedsMaxSupply,
    ExpectedPause,
    IncompatibleLayout,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    LedgerError,
    NotInitialized,
    Unauthorized,
    UnknownRole,
    UnsupportedOperation,
)
from .events import (
    Approval,
    AutoBurn,
    AutoBurnStatusUpdated,
    BridgeAddressUpdated,
    BurnExemptionUpdated,
    EventLog,
    Initialized,
    LedgerEvent,
    LoggedEvent,
    Minted,
    Paused,
    RoleGranted,
    RoleRevoked,
    Transfer,
    Unpaused,
    Upgraded,
)
from .roles import Role, RoleRegistry
from .storage import (
    LAYOUT_V1,
    LAYOUT_V2,
    Changeset,
    LedgerState,
    Slot,
    StorageLayout,
    load_snapshot,
    save_snapshot,
)
from .logic import (
    BASIS_POINTS_DENOMINATOR,
    BURN_RATE_BASIS_POINTS,
    DECIMALS,
    MAX_SUPPLY,
    LedgerLogicV1,
    LedgerLogicV2,
    LogicParams,
    TransferReceipt,
    logic_for_version,
)
from .observability import LedgerMetrics
from .config import LedgerConfig, get_config, reset_config, set_config
from .proxy import LedgerProxy

__all__ = [
    # Addresses
    "Address",
    "ZERO_ADDRESS",
    "MAX_UINT256",
    "address_from_label",
    "normalize_address",
    # Errors
    "LedgerError",
    "InvalidAddress",
    "InvalidAmount",
    "ExceedsMaxSupply",
    "Unauthorized",
    "InsufficientBalance",
    "InsufficientAllowance",
    "EnforcedPause",
    "ExpectedPause",
    "AlreadyInitialized",
    "NotInitialized",
    "IncompatibleLayout",
    "UnknownRole",
    "UnsupportedOperation",
    # Events
    "LedgerEvent",
    "LoggedEvent",
    "EventLog",
    "Transfer",
    "AutoBurn",
    "Minted",
    "Approval",
    "BurnExemptionUpdated",
    "AutoBurnStatusUpdated",
    "RoleGranted",
    "RoleRevoked",
    "Paused",
    "Unpaused",
    "Initialized",
    "Upgraded",
    "BridgeAddressUpdated",
    # Roles
    "Role",
    "RoleRegistry",
    # Storage
    "Slot",
    "StorageLayout",
    "LAYOUT_V1",
    "LAYOUT_V2",
    "Changeset",
    "LedgerState",
    "load_snapshot",
    "save_snapshot",
    # Logic
    "DECIMALS",
    "MAX_SUPPLY",
    "BURN_RATE_BASIS_POINTS",
    "BASIS_POINTS_DENOMINATOR",
    "LogicParams",
    "TransferReceipt",
    "LedgerLogicV1",
    "LedgerLogicV2",
    "logic_for_version",
    # Proxy
    "LedgerProxy",
    # Config / observability
    "LedgerConfig",
    "get_config",
    "set_config",
    "reset_config",
    "LedgerMetrics",
]
