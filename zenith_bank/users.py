"""
Identity Store Module

Holds users (one administrator, many regular users) keyed by identifier.
Registration and login go through the Credential Module; the only
mutation after creation is replacing a credential hash.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .credentials import CredentialHasher, password_hasher, pin_hasher
from .errors import DuplicateEmail, InvalidCredentials, IncorrectPin
from .config import get_config
from .logging_config import get_logger, log_action


ADMIN_USER_ID = "admin-user"
ADMIN_NAME = "Admin"


class UserRole(Enum):
    """User roles"""
    USER = "user"
    ADMIN = "admin"


@dataclass
class User(StorageRecord):
    """Registered user"""
    name: str
    email: str
    password_hash: str
    pin_hash: str
    role: UserRole = UserRole.USER
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
    
    def to_public_dict(self) -> Dict:
        """User fields safe to hand to a presentation layer"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
        }


class UserManager:
    """
    Manages user registration, authentication and PIN changes
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        passwords: Optional[CredentialHasher] = None,
        pins: Optional[CredentialHasher] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.passwords = passwords or password_hasher()
        self.pins = pins or pin_hasher()
        self.users_table = "users"
        self.logger = get_logger("zenith.users")
        
        self.ensure_admin()
    
    def ensure_admin(self) -> Optional[User]:
        """
        Seed the administrator when no user holds the admin role
        
        This is always the case for an empty store, and for a store whose
        imported snapshot carried no administrator.
        
        Returns:
            The seeded administrator, or None if one already existed
        """
        with self.storage.atomic():
            if self.storage.find(self.users_table, {"role": UserRole.ADMIN.value}):
                return None
            return self._seed_admin()
    
    def _seed_admin(self) -> User:
        config = get_config()
        now = datetime.now(timezone.utc)
        admin = User(
            id=ADMIN_USER_ID,
            created_at=now,
            updated_at=now,
            name=ADMIN_NAME,
            email=config.admin_email,
            password_hash=self.passwords.hash(config.admin_password),
            pin_hash="",
            role=UserRole.ADMIN
        )
        self._save_user(admin)
        
        self.audit_trail.log_event(
            event_type=AuditEventType.ADMIN_SEEDED,
            entity_type="user",
            entity_id=admin.id,
            metadata={"email": admin.email}
        )
        log_action(self.logger, "info", "Administrator seeded",
                   user_id=admin.id, action="seed_admin", resource="user")
        return admin
    
    def register(self, name: str, email: str, password: str, pin: str) -> User:
        """
        Register a regular user
        
        Args:
            name: Display name
            email: Login email, unique (case-sensitive)
            password: Login password
            pin: Transaction PIN
            
        Returns:
            Created User
            
        Raises:
            DuplicateEmail: a user with this email already exists
        """
        with self.storage.atomic():
            if self.find_by_email(email):
                log_action(self.logger, "warning", "Registration rejected: duplicate email",
                           action="register", resource="user")
                raise DuplicateEmail()
            
            now = datetime.now(timezone.utc)
            user = User(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                name=name,
                email=email,
                password_hash=self.passwords.hash(password),
                pin_hash=self.pins.hash(pin),
                role=UserRole.USER
            )
            self._save_user(user)
            
            self.audit_trail.log_event(
                event_type=AuditEventType.USER_REGISTERED,
                entity_type="user",
                entity_id=user.id,
                metadata={"email": email, "name": name},
                user_id=user.id
            )
        
        log_action(self.logger, "info", "User registered",
                   user_id=user.id, action="register", resource="user")
        return user
    
    def login(self, email: str, password: str) -> User:
        """
        Authenticate by email and password
        
        Unknown email and wrong password fail identically.
        
        Raises:
            InvalidCredentials: authentication failed
        """
        user = self.find_by_email(email)
        if not user or not self.passwords.verify(password, user.password_hash):
            self.audit_trail.log_event(
                event_type=AuditEventType.LOGIN_FAILED,
                entity_type="user",
                entity_id=user.id if user else "",
                metadata={"email": email}
            )
            log_action(self.logger, "warning", "Login failed",
                       action="login_failed", resource="auth")
            raise InvalidCredentials()
        
        if self.passwords.needs_rehash(user.password_hash):
            user = self._rehash(user, "password_hash", self.passwords.hash(password))
        
        self.audit_trail.log_event(
            event_type=AuditEventType.LOGIN_SUCCESS,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id
        )
        log_action(self.logger, "info", "User authenticated successfully",
                   user_id=user.id, action="login", resource="auth")
        return user
    
    def find_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        user_dict = self.storage.load(self.users_table, user_id)
        if user_dict:
            return self._user_from_dict(user_dict)
        return None
    
    def find_by_email(self, email: str) -> Optional[User]:
        """Get user by exact email"""
        users = self.storage.find(self.users_table, {"email": email})
        if users:
            return self._user_from_dict(users[0])
        return None
    
    def list_users(self, role: Optional[UserRole] = None) -> List[User]:
        """All users in registration order, optionally filtered by role"""
        users = [self._user_from_dict(data) for data in self.storage.load_all(self.users_table)]
        if role is not None:
            users = [u for u in users if u.role == role]
        return users
    
    def verify_pin(self, user_id: str, pin: str) -> bool:
        """
        Check a transaction PIN
        
        Unknown users and users without a PIN (the administrator) never verify.
        """
        user = self.find_by_id(user_id)
        if not user or not user.pin_hash:
            return False
        
        if not self.pins.verify(pin, user.pin_hash):
            self.audit_trail.log_event(
                event_type=AuditEventType.PIN_VERIFICATION_FAILED,
                entity_type="user",
                entity_id=user_id,
                user_id=user_id
            )
            log_action(self.logger, "warning", "PIN verification failed",
                       user_id=user_id, action="verify_pin", resource="user")
            return False
        
        if self.pins.needs_rehash(user.pin_hash):
            self._rehash(user, "pin_hash", self.pins.hash(pin))
        return True
    
    def change_pin(self, user_id: str, old_pin: str, new_pin: str) -> None:
        """
        Replace a user's PIN
        
        The new PIN's format is the caller's concern.
        
        Raises:
            IncorrectPin: old PIN did not verify
        """
        with self.storage.atomic():
            verified = self.verify_pin(user_id, old_pin)
            if verified:
                user = self.find_by_id(user_id)
                user.pin_hash = self.pins.hash(new_pin)
                user.updated_at = datetime.now(timezone.utc)
                self._save_user(user)

                self.audit_trail.log_event(
                    event_type=AuditEventType.PIN_CHANGED,
                    entity_type="user",
                    entity_id=user_id,
                    user_id=user_id
                )

        # Raised outside the scope so the failed-verification audit event is kept
        if not verified:
            raise IncorrectPin("Incorrect old PIN.")

        log_action(self.logger, "info", "PIN changed",
                   user_id=user_id, action="change_pin", resource="user")
    
    def replace_all(self, users: List[User]) -> None:
        """Swap the whole user collection, keeping the given order"""
        with self.storage.atomic():
            self.storage.clear_table(self.users_table)
            for user in users:
                self._save_user(user)
    
    def _rehash(self, user: User, field_name: str, new_hash: str) -> User:
        """Upgrade a legacy or outdated credential hash in place"""
        setattr(user, field_name, new_hash)
        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)
        self.audit_trail.log_event(
            event_type=AuditEventType.CREDENTIAL_REHASHED,
            entity_type="user",
            entity_id=user.id,
            metadata={"field": field_name},
            user_id=user.id
        )
        return user
    
    def _save_user(self, user: User) -> None:
        self.storage.save(self.users_table, user.id, self._user_to_dict(user))
    
    def _user_to_dict(self, user: User) -> Dict:
        result = user.to_dict()
        result['role'] = user.role.value
        return result
    
    def _user_from_dict(self, data: Dict) -> User:
        return User(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            email=data['email'],
            password_hash=data['password_hash'],
            pin_hash=data.get('pin_hash', ""),
            role=UserRole(data['role'])
        )
