"""
MongoDB access for the two account collections.

``AccountStore`` is built once at process start and handed to every
service. Driver errors leave this module as ``StoreFailure``; a duplicate
name on insert leaves it as ``NameTaken``.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import NameTaken, StoreFailure
from schemas import Role

logger = logging.getLogger(__name__)


def to_obj_id(id_str: Any) -> Optional[ObjectId]:
    """Parse an account id, None when it is not a valid ObjectId."""
    if isinstance(id_str, ObjectId):
        return id_str
    if isinstance(id_str, str) and ObjectId.is_valid(id_str):
        return ObjectId(id_str)
    return None


class AccountStore:
    def __init__(self, db: Database):
        self.db = db

    @classmethod
    def connect(cls, url: str, name: str) -> "AccountStore":
        # MongoClient connects lazily, on the first operation
        return cls(MongoClient(url)[name])

    def collection(self, role: Role):
        return self.db[role.collection]

    def ensure_indexes(self) -> None:
        for role in Role:
            try:
                self.collection(role).create_index([("name", ASCENDING)], unique=True, name="unique_name")
            except PyMongoError as exc:
                logger.exception("Could not create name index on %s", role.collection)
                raise StoreFailure() from exc

    def insert_account(self, role: Role, document: Dict[str, Any]) -> str:
        try:
            res = self.collection(role).insert_one(document)
        except DuplicateKeyError as exc:
            raise NameTaken() from exc
        except PyMongoError as exc:
            logger.exception("Insert into %s failed", role.collection)
            raise StoreFailure() from exc
        return str(res.inserted_id)

    def find_by_id(self, role: Role, account_id: Any) -> Optional[Dict[str, Any]]:
        oid = to_obj_id(account_id)
        if oid is None:
            return None
        try:
            return self.collection(role).find_one({"_id": oid})
        except PyMongoError as exc:
            logger.exception("Lookup by id in %s failed", role.collection)
            raise StoreFailure() from exc

    def find_by_name(self, role: Role, name: str) -> Optional[Dict[str, Any]]:
        if not isinstance(name, str):
            return None
        try:
            return self.collection(role).find_one({"name": name})
        except PyMongoError as exc:
            logger.exception("Lookup by name in %s failed", role.collection)
            raise StoreFailure() from exc

    def list_names(self, role: Role) -> List[Dict[str, str]]:
        try:
            return list(self.collection(role).find({}, {"name": 1, "_id": 0}))
        except PyMongoError as exc:
            logger.exception("Listing %s failed", role.collection)
            raise StoreFailure() from exc

    def push_feedback(self, role: Role, name: str, entry: Dict[str, Any]) -> bool:
        """Append one feedback entry to the account called ``name``.

        A single ``$push`` update, so concurrent appends never lose entries.
        Returns False when no account has that name.
        """
        try:
            res = self.collection(role).update_one({"name": name}, {"$push": {"feedback": entry}})
        except PyMongoError as exc:
            logger.exception("Feedback append in %s failed", role.collection)
            raise StoreFailure() from exc
        return res.matched_count > 0

    def ping(self) -> List[str]:
        return self.db.list_collection_names()


def sanitize(doc: Dict) -> Dict:
    """Make an account document safe to return: ``id`` instead of ``_id``, no hash."""
    if not doc:
        return doc
    d = {k: v for k, v in doc.items() if k != "password_hash"}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for key in ("orderHistory", "acceptedOrders"):
        if key in d:
            d[key] = [str(ref) for ref in d[key]]
    return d
