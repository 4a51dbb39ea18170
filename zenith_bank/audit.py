"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Registrations, sign-ins, PIN changes, postings and data imports all
leave an event here.
"""

import hashlib
import json
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal
import uuid

from .storage import StorageInterface, StorageRecord


class AuditEventType(Enum):
    """Types of audit events"""
    # Identity
    USER_REGISTERED = "user_registered"
    ADMIN_SEEDED = "admin_seeded"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    PIN_CHANGED = "pin_changed"
    PIN_VERIFICATION_FAILED = "pin_verification_failed"
    CREDENTIAL_REHASHED = "credential_rehashed"

    ACCOUNT_CREATED = "account_created"

    # Postings
    DEPOSIT_POSTED = "deposit_posted"
    WITHDRAWAL_POSTED = "withdrawal_posted"
    TRANSFER_POSTED = "transfer_posted"

    # Bulk data
    DATA_IMPORTED = "data_imported"
    DATA_EXPORTED = "data_exported"
    STATEMENT_GENERATED = "statement_generated"


def _jsonable(value: Any) -> Any:
    """Metadata values as they will be hashed and stored"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class AuditEvent(StorageRecord):
    """
    One link of the audit chain. ``current_hash`` covers every other
    field except ``updated_at``, including the predecessor's hash.
    """
    event_type: AuditEventType
    entity_type: str  # user, account, transaction, system
    entity_id: str
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any]
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        self.metadata = _jsonable(self.metadata or {})

    def calculate_hash(self) -> str:
        payload = self.to_dict()
        del payload['current_hash'], payload['updated_at']
        encoded = json.dumps(payload, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(encoded.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['event_type'] = self.event_type.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data, event_type=AuditEventType(data['event_type']))
        return super().from_dict(data)


class AuditTrail:
    """
    Append-only, hash-chained event log

    Events chain in storage insertion order. The head is read back from
    storage on every append, so an event discarded by a rolled-back atomic
    scope is never anyone's predecessor. Appends run inside
    ``storage.atomic()``, whose lock serializes them across threads.
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events",
                 enabled: bool = True):
        self.storage = storage
        self.table_name = table_name
        self.enabled = enabled

    def _head_hash(self) -> str:
        events = self.storage.load_all(self.table_name)
        return events[-1].get('current_hash', "") if events else ""

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> Optional[AuditEvent]:
        """
        Append an event to the chain

        Args:
            event_type: What happened
            entity_type: Kind of entity affected
            entity_id: ID of the entity
            metadata: Event-specific details
            user_id: ID of user who initiated the action
            session_id: Session identifier

        Returns:
            The stored AuditEvent, or None when auditing is disabled
        """
        if not self.enabled:
            return None

        with self.storage.atomic():
            now = datetime.now(timezone.utc)
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=self._head_hash(),
                current_hash="",
                metadata=metadata,
                user_id=user_id,
                session_id=session_id
            )
            event.current_hash = event.calculate_hash()
            self.storage.save(self.table_name, event.id, event.to_dict())
        return event

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """Events about one entity, oldest first"""
        found = self.storage.find(self.table_name, {'entity_type': entity_type,
                                                    'entity_id': entity_id})
        return [AuditEvent.from_dict(data) for data in found]

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        found = self.storage.find(self.table_name, {'event_type': event_type.value})
        return [AuditEvent.from_dict(data) for data in found]

    def get_all_events(self) -> List[AuditEvent]:
        return [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]

    def count_events(self) -> int:
        return self.storage.count(self.table_name)

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Walk the chain from the first event and report every event whose
        own hash is wrong (``hash_errors``) or whose predecessor link does
        not match (``chain_breaks``)
        """
        events = self.get_all_events()
        hash_errors = []
        chain_breaks = []

        expected_previous = ""
        for position, event in enumerate(events):
            actual = event.calculate_hash()
            if event.current_hash != actual:
                hash_errors.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': actual,
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != expected_previous:
                chain_breaks.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': expected_previous,
                    'actual_previous_hash': event.previous_hash
                })
            expected_previous = event.current_hash

        return {
            'valid': not hash_errors and not chain_breaks,
            'total_events': len(events),
            'hash_errors': hash_errors,
            'chain_breaks': chain_breaks
        }
