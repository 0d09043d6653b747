"""
Registration and login for both account kinds.
"""
import logging
from typing import Any, Mapping

from passlib.context import CryptContext

from database import AccountStore
from errors import InvalidCredentials, ValidationFailed
from schemas import ACCOUNT_MODELS, Role
from validation import normalize, validate_signup

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


class AccountService:
    def __init__(self, store: AccountStore):
        self.store = store

    def register(self, role: Role, fields: Mapping[str, Any]) -> str:
        """Validate a sign-up form and create the account. Returns the new id.

        Name uniqueness is enforced by the store's unique index, so two
        concurrent sign-ups for one name end with exactly one account.
        """
        violations = validate_signup(fields, role)
        if violations:
            logger.info("Rejected %s sign-up: %s", role.value, [v.message for v in violations])
            raise ValidationFailed(violations)

        fields = normalize(fields)
        data = dict(
            name=fields["name"],
            password_hash=hash_password(fields["password"]),
            email=fields["email"],
            phone=fields["phone"],
            address=fields["address"],
            city=fields["city"],
            creditCardNum=fields["credit"],
        )
        if role is Role.DELIVERER:
            data["transportation"] = fields["transportation"]
        doc = ACCOUNT_MODELS[role](**data).model_dump()

        account_id = self.store.insert_account(role, doc)
        logger.info("%s sign up successful: %s", role.value.capitalize(), account_id)
        return account_id

    def login(self, name: Any, password: Any, role: Role) -> str:
        """Check credentials against the role's collection. Returns the account id.

        Unknown names and wrong passwords fail the same way.
        """
        account = None
        if isinstance(name, str) and name:
            account = self.store.find_by_name(role, name)
        if not isinstance(password, str):
            password = ""
        if account is None:
            pwd_context.dummy_verify()
            raise InvalidCredentials()
        if not verify_password(password, account.get("password_hash", "")):
            raise InvalidCredentials()
        logger.info("%s logged in: %s", role.value.capitalize(), account["_id"])
        return str(account["_id"])
