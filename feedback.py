"""
Feedback attribution.

Users rate deliverers and deliverers rate users. The rater's display name is
copied into the entry when it is written; later renames do not touch it.
"""
import logging
from typing import Any

from pydantic import ValidationError

from database import AccountStore
from errors import TargetNotFound, Unauthenticated, ValidationFailed
from schemas import FeedbackEntry
from sessions import Identity
from validation import as_text, violations_from

logger = logging.getLogger(__name__)

FIELD_MESSAGES = {
    "rating": "Enter a rating from 1 to 5",
    "msg": "Feedback message is too long",
}


class FeedbackService:
    def __init__(self, store: AccountStore):
        self.store = store

    def submit(self, rater: Identity, target_name: Any, rating: Any, message: Any) -> FeedbackEntry:
        if rater.is_anonymous:
            raise Unauthenticated("You have to be logged in to make a comment")

        try:
            entry = FeedbackEntry(rating=rating, madeBy=rater.name or "", msg=as_text(message))
        except ValidationError as exc:
            raise ValidationFailed(violations_from(exc, FIELD_MESSAGES, "Invalid feedback")) from exc

        target_role = rater.role.opposite
        if not isinstance(target_name, str) or not target_name:
            raise TargetNotFound()
        if not self.store.push_feedback(target_role, target_name, entry.model_dump()):
            logger.info("Feedback target %r not found in %s", target_name, target_role.collection)
            raise TargetNotFound()

        logger.info("Feedback from %s %s added to %s", rater.role.value, rater.account_id, target_name)
        return entry
