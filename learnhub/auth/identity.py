import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.tokens import CredentialVerifier
from learnhub.errors import EmailNotVerified, Unauthenticated

logger = logging.getLogger("learnhub.auth")


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass(frozen=True)
class Principal:
    """
    Authenticated actor for one request.
    Projection of a users document - never carries secrets.
    """
    id: str
    role: Role
    is_deleted: bool = False
    email_verified: bool = False

    @classmethod
    def from_account(cls, account: dict) -> "Principal":
        return cls(
            id=account["user_id"],
            role=Role(account.get("role", Role.STUDENT.value)),
            is_deleted=bool(account.get("is_deleted", False)),
            email_verified=bool(account.get("email_verified", False)),
        )


class AccountStore:
    """Account lookups over the users collection"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def find_by_id(self, user_id: str) -> Optional[dict]:
        return await self.db.users.find_one({"user_id": user_id}, {"_id": 0})

    async def save(self, account: dict) -> dict:
        account = {k: v for k, v in account.items() if k != "_id"}
        account["updated_at"] = datetime.utcnow()
        await self.db.users.update_one(
            {"user_id": account["user_id"]},
            {"$set": account, "$setOnInsert": {"created_at": account["updated_at"]}},
            upsert=True,
        )
        return await self.find_by_id(account["user_id"])


class IdentityResolver:
    def __init__(self, verifier: CredentialVerifier, accounts: AccountStore):
        self.verifier = verifier
        self.accounts = accounts

    async def resolve(self, credential: Optional[str]) -> Principal:
        """
        Resolve a bearer credential into a Principal

        Raises:
            Unauthenticated: missing/invalid/expired token or unknown account
            EmailNotVerified: valid token, account email not verified
        """
        try:
            claims = self.verifier.verify(credential)
        except Unauthenticated:
            logger.warning("Rejected bearer credential")
            raise

        account = await self.accounts.find_by_id(claims.account_id)
        if not account:
            logger.warning("Token references unknown account")
            raise Unauthenticated("Invalid token")

        if not account.get("email_verified", False):
            raise EmailNotVerified()

        return Principal.from_account(account)
