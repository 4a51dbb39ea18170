"""
Tests for snapshot import and export
"""

import hashlib
import json
from decimal import Decimal

import pytest

from zenith_bank.storage import InMemoryStorage
from zenith_bank.system import BankingSystem
from zenith_bank.users import UserRole, ADMIN_USER_ID
from zenith_bank.currency import Money
from zenith_bank.errors import InvalidDataFile


def sha256(value):
    return hashlib.sha256(value.encode()).hexdigest()


def sample_snapshot():
    return {
        "users": [
            {"id": ADMIN_USER_ID, "name": "Admin", "email": "admin@zenithbank.com",
             "passwordHash": sha256("admin123"), "pinHash": "", "role": "admin"},
            {"id": "u-1", "name": "Carol", "email": "carol@example.com",
             "passwordHash": sha256("carolpw"), "pinHash": sha256("2468"), "role": "user"},
            {"id": "u-2", "name": "Dave", "email": "dave@example.com",
             "passwordHash": sha256("davepw"), "pinHash": sha256("1357"), "role": "user"},
        ],
        "accounts": [
            {"accountNumber": "1000000001", "userId": "u-1", "balance": 75},
            {"accountNumber": "1000000002", "userId": "u-2", "balance": "25.00"},
        ],
        "transactions": [
            {"id": "t-1", "accountId": "1000000001", "type": "Deposit", "amount": 100,
             "timestamp": "2024-03-01T10:00:00.000Z", "description": "Deposit of $100.00"},
            {"id": "t-2", "accountId": "1000000001", "type": "Transfer (Debit)", "amount": 25,
             "timestamp": "2024-03-02T10:00:00.000Z", "description": "Transfer to 1000000002"},
            {"id": "t-3", "accountId": "1000000002", "type": "Transfer (Credit)", "amount": 25,
             "timestamp": "2024-03-02T10:00:00.000Z", "description": "Transfer from 1000000001"},
        ],
    }


class TestSnapshotManager:
    """Test whole-store import and export"""
    
    def setup_method(self):
        self.system = BankingSystem(storage=InMemoryStorage())
        self.snapshots = self.system.snapshots
    
    def teardown_method(self):
        self.system.close()
    
    def test_export_layout(self):
        """Test exported collections follow insertion order and field names"""
        alice = self.system.gateway.register("Alice", "alice@example.com", "secret", "1234")
        self.system.gateway.deposit(alice.id, "12.5")
        
        data = self.snapshots.export_data()
        
        assert [u["role"] for u in data["users"]] == ["admin", "user"]
        assert data["accounts"] == [{
            "accountNumber": alice.account.account_number,
            "userId": alice.id,
            "balance": "12.50",
        }]
        transaction = data["transactions"][0]
        assert transaction["type"] == "Deposit"
        assert transaction["amount"] == "12.50"
        assert transaction["accountId"] == alice.account.account_number
        assert transaction["timestamp"].endswith("Z")
    
    def test_export_then_import_restores_state(self):
        """Test importing an export reproduces the same data"""
        alice = self.system.gateway.register("Alice", "alice@example.com", "secret", "1234")
        bob = self.system.gateway.register("Bob", "bob@example.com", "secret", "9999")
        self.system.gateway.deposit(alice.id, "100")
        self.system.gateway.transfer(alice.id, "1234", bob.account.account_number, "30")
        exported = self.snapshots.export_data()
        
        other = BankingSystem(storage=InMemoryStorage())
        other.snapshots.import_data(json.loads(json.dumps(exported)))
        
        reimported = other.snapshots.export_data()
        assert reimported == exported
        assert other.gateway.login("alice@example.com", "secret").account.balance == Money(Decimal("70"))
        other.close()
    
    def test_import_replaces_everything(self):
        """Test an import swaps out all existing records"""
        self.system.gateway.register("Alice", "alice@example.com", "secret", "1234")
        
        counts = self.snapshots.import_data(sample_snapshot())
        
        assert counts == {"users": 3, "accounts": 2, "transactions": 3}
        assert self.system.user_manager.find_by_email("alice@example.com") is None
        assert [t.id for t in self.system.ledger.list_all()] == ["t-2", "t-3", "t-1"]
    
    def test_legacy_hashes_sign_in(self):
        """Test imported SHA-256 credentials work for login and PIN checks"""
        self.snapshots.import_data(sample_snapshot())
        
        carol = self.system.gateway.login("carol@example.com", "carolpw")
        assert carol.account.account_number == "1000000001"
        self.system.gateway.withdraw(carol.id, "2468", "5")
        assert self.system.account_manager.get_account_by_number("1000000001").balance == Money(Decimal("70"))
    
    def test_missing_collection(self):
        for name in ["users", "accounts", "transactions"]:
            data = sample_snapshot()
            del data[name]
            with pytest.raises(InvalidDataFile):
                self.snapshots.import_data(data)
    
    def test_not_an_object(self):
        for data in [[], "text", None, {"users": {}, "accounts": [], "transactions": []}]:
            with pytest.raises(InvalidDataFile):
                self.snapshots.import_data(data)
    
    @pytest.mark.parametrize("mutate", [
        lambda d: d["users"][1].pop("email"),
        lambda d: d["users"][1].update(role="superuser"),
        lambda d: d["accounts"][0].update(balance=-1),
        lambda d: d["accounts"][0].update(balance="lots"),
        lambda d: d["transactions"][0].update(type="Refund"),
        lambda d: d["transactions"][0].update(amount=0),
        lambda d: d["transactions"][0].update(timestamp="yesterday"),
        lambda d: d["accounts"][0].update(userId="nobody"),
        lambda d: d["transactions"][0].update(accountId="0000000000"),
        lambda d: d["users"][2].update(email="carol@example.com"),
        lambda d: d["accounts"][1].update(userId="u-1"),
        lambda d: d["accounts"][1].update(accountNumber="1000000001"),
        lambda d: d["transactions"][1].update(id="t-1"),
        lambda d: d["users"][1].update(role="admin"),
        lambda d: d["transactions"][0].update(amount="0.001"),
        lambda d: d["users"][1].update(passwordHash="scrypt$password$3$8$1$aa$bb"),
        lambda d: d["users"][2].update(pinHash="scrypt$pin$1073741824$8$1$aa$bb"),
        lambda d: d["users"][1].update(pinHash="1234"),
    ])
    def test_invalid_records_leave_store_untouched(self, mutate):
        """Test a rejected import changes nothing"""
        alice = self.system.gateway.register("Alice", "alice@example.com", "secret", "1234")
        before = self.snapshots.export_data()
        
        data = sample_snapshot()
        mutate(data)
        with pytest.raises(InvalidDataFile):
            self.snapshots.import_data(data)
        
        assert self.snapshots.export_data() == before
        assert self.system.user_manager.find_by_id(alice.id) is not None
    
    def test_admin_seeded_when_missing(self):
        """Test a snapshot without an administrator gets one seeded"""
        data = sample_snapshot()
        data["users"] = data["users"][1:]
        
        self.snapshots.import_data(data)
        
        admins = self.system.user_manager.list_users(role=UserRole.ADMIN)
        assert [a.id for a in admins] == [ADMIN_USER_ID]
    
    def test_admin_identity_taken(self):
        data = sample_snapshot()
        data["users"] = data["users"][1:]
        data["users"][0]["email"] = "admin@zenithbank.com"
        
        with pytest.raises(InvalidDataFile):
            self.snapshots.import_data(data)
    
    def test_json_files(self, tmp_path):
        """Test reading and writing snapshot files"""
        self.system.gateway.register("Alice", "alice@example.com", "secret", "1234")
        path = self.snapshots.export_json(tmp_path / "export.json")
        
        other = BankingSystem(storage=InMemoryStorage())
        assert other.snapshots.import_json(path)["users"] == 2
        other.close()
        
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidDataFile):
            self.snapshots.import_json(broken)
