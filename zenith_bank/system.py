"""
Banking system wiring

One object owning a storage backend and every component built on it.
Construct it, operate through its components, then ``close()`` it.
"""

from typing import Optional

from .storage import StorageInterface, create_storage
from .audit import AuditTrail
from .credentials import CredentialHasher
from .users import UserManager
from .accounts import AccountManager
from .ledger import TransactionLedger
from .transactions import TransactionProcessor
from .session import AuthGateway, SessionStore
from .snapshot import SnapshotManager
from .statements import StatementGenerator
from .reporting import AdminReporting
from .config import get_config


class BankingSystem:
    """Ledger system with all components initialized"""
    
    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        use_sqlite: Optional[bool] = None,
        passwords: Optional[CredentialHasher] = None,
        pins: Optional[CredentialHasher] = None,
        session_store: Optional[SessionStore] = None
    ):
        config = get_config()
        if storage is None:
            if use_sqlite is None:
                storage = create_storage()
            else:
                storage = create_storage("sqlite" if use_sqlite else "memory")
        self.storage = storage
        
        self.audit_trail = AuditTrail(self.storage, enabled=config.enable_audit_logging)
        self.user_manager = UserManager(self.storage, self.audit_trail, passwords, pins)
        self.account_manager = AccountManager(self.storage, self.audit_trail)
        self.ledger = TransactionLedger(self.storage)
        self.transaction_processor = TransactionProcessor(
            self.storage, self.ledger, self.account_manager, self.audit_trail
        )
        self.gateway = AuthGateway(
            self.storage, self.user_manager, self.account_manager,
            self.transaction_processor, session_store
        )
        self.snapshots = SnapshotManager(
            self.storage, self.user_manager, self.account_manager,
            self.ledger, self.audit_trail
        )
        self.statements = StatementGenerator(
            self.ledger, self.account_manager, self.user_manager, self.audit_trail
        )
        self.reporting = AdminReporting(self.user_manager, self.account_manager, self.ledger)
    
    def close(self) -> None:
        """Release the storage backend"""
        self.storage.close()
    
    def __enter__(self) -> "BankingSystem":
        return self
    
    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
