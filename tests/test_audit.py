"""
Tests for the hash-chained audit trail
"""

import pytest

from zenith_bank.storage import InMemoryStorage
from zenith_bank.audit import AuditTrail, AuditEventType


class TestAuditTrail:
    """Test audit chain behaviour"""
    
    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
    
    def test_events_are_chained(self):
        """Test each event links to its predecessor's hash"""
        first = self.audit.log_event(AuditEventType.USER_REGISTERED, "user", "u1")
        second = self.audit.log_event(AuditEventType.ACCOUNT_CREATED, "account", "0000000001",
                                      metadata={"user_id": "u1"})
        
        assert first.previous_hash == ""
        assert second.previous_hash == first.current_hash
        assert second.verify_hash()
        
        result = self.audit.verify_integrity()
        assert result['valid']
        assert result['total_events'] == 2
    
    def test_tampering_is_detected(self):
        """Test a modified stored event breaks verification"""
        event = self.audit.log_event(AuditEventType.DEPOSIT_POSTED, "transaction", "t1",
                                     metadata={"amount": "10.00"})
        self.audit.log_event(AuditEventType.WITHDRAWAL_POSTED, "transaction", "t2")
        
        stored = self.storage.load("audit_events", event.id)
        stored['metadata']['amount'] = "1000.00"
        self.storage.save("audit_events", event.id, stored)
        
        result = self.audit.verify_integrity()
        assert not result['valid']
        assert result['hash_errors'][0]['event_id'] == event.id
    
    def test_rolled_back_event_leaves_chain_intact(self):
        """Test an event written in a failed atomic scope is not chained to"""
        self.audit.log_event(AuditEventType.USER_REGISTERED, "user", "u1")
        
        with pytest.raises(RuntimeError):
            with self.storage.atomic():
                self.audit.log_event(AuditEventType.DEPOSIT_POSTED, "transaction", "t1")
                raise RuntimeError("boom")
        
        self.audit.log_event(AuditEventType.LOGIN_SUCCESS, "user", "u1")
        
        assert self.audit.count_events() == 2
        assert self.audit.verify_integrity()['valid']
    
    def test_queries(self):
        """Test lookup by entity and by type"""
        self.audit.log_event(AuditEventType.LOGIN_FAILED, "user", "u1")
        self.audit.log_event(AuditEventType.LOGIN_SUCCESS, "user", "u1")
        self.audit.log_event(AuditEventType.LOGIN_SUCCESS, "user", "u2")
        
        assert len(self.audit.get_events_for_entity("user", "u1")) == 2
        successes = self.audit.get_events_by_type(AuditEventType.LOGIN_SUCCESS)
        assert [e.entity_id for e in successes] == ["u1", "u2"]
    
    def test_disabled_trail_records_nothing(self):
        """Test a disabled trail returns None and stores nothing"""
        audit = AuditTrail(self.storage, enabled=False)
        
        assert audit.log_event(AuditEventType.USER_REGISTERED, "user", "u1") is None
        assert audit.count_events() == 0
