"""
Love Journey - Data Records
===========================

Plain records handed between the store, the services and the API layer.
They carry no framework state: the store keeps them in memory and swaps in
updated copies (records are frozen) whenever something changes.

A Relationship is a tagged variant:
- UnlinkedRelationship - created by the first partner, waiting on the code
- LinkedRelationship   - both partners present, terminal state
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from django.db import models
from django.utils import timezone


class AnswerRole(models.TextChoices):
    """
    Which answer slot of a DailyQuestion a partner owns.
    The creator of the relationship answers as SELF, the linked partner as PARTNER.
    """
    SELF = 'self', 'Self'           # writes user_answer
    PARTNER = 'partner', 'Partner'  # writes partner_answer


class AnswerOutcome(models.TextChoices):
    PARTIALLY_ANSWERED = 'partially_answered', 'Partially answered'
    FULLY_ANSWERED = 'fully_answered', 'Fully answered'


@dataclass(frozen=True)
class User:
    id: int
    username: str
    password_hash: str = field(repr=False)

    def to_dict(self):
        # Never expose the hash
        return {'id': self.id, 'username': self.username}


# =========================================================
# RELATIONSHIP - tagged variant
# =========================================================

class _Pairing:
    """Behaviour shared by both relationship states."""

    def includes_user(self, user_id):
        """Check if this relationship includes the given user."""
        return user_id == self.user_id or (
            self.partner_user_id is not None and user_id == self.partner_user_id
        )

    def role_of(self, user_id):
        """Return the AnswerRole of a participant, or None for outsiders."""
        if user_id == self.user_id:
            return AnswerRole.SELF
        if self.partner_user_id is not None and user_id == self.partner_user_id:
            return AnswerRole.PARTNER
        return None

    def partner_of(self, user_id):
        """Given one participant, return the other one's id."""
        if user_id == self.user_id:
            return self.partner_user_id
        if self.partner_user_id is not None and user_id == self.partner_user_id:
            return self.user_id
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'partnerUserId': self.partner_user_id,
            'partnerName': self.partner_name,
            'partnerCode': self.partner_code,
            'anniversary': self.anniversary_date.isoformat(),
            'daysTogether': self.days_together(),
            'description': self.description,
        }

    def days_together(self, on=None):
        """Whole days since the anniversary, as of `on` (default: today)."""
        on = on or timezone.localdate()
        return (on - self.anniversary_date).days


@dataclass(frozen=True)
class UnlinkedRelationship(_Pairing):
    """A relationship still waiting for the second partner to enter the code."""
    id: int
    user_id: int
    partner_name: str
    partner_code: str
    anniversary_date: date
    description: Optional[str] = None

    is_linked = False

    @property
    def partner_user_id(self):
        return None

    def linked_to(self, partner_user_id):
        """Return the Linked form of this relationship."""
        return LinkedRelationship(
            id=self.id,
            user_id=self.user_id,
            partner_user_id=partner_user_id,
            partner_name=self.partner_name,
            partner_code=self.partner_code,
            anniversary_date=self.anniversary_date,
            description=self.description,
        )


@dataclass(frozen=True)
class LinkedRelationship(_Pairing):
    """Both partners are present. There is no way back to Unlinked."""
    id: int
    user_id: int
    partner_user_id: int
    partner_name: str
    partner_code: str
    anniversary_date: date
    description: Optional[str] = None

    is_linked = True


# =========================================================
# DAILY QUESTION
# =========================================================

@dataclass(frozen=True)
class DailyQuestion:
    """
    One prompt for a relationship on one calendar day.

    `chained` is set by the ledger the first time both slots fill, so the
    successor question is created once no matter how often answers change.
    """
    id: int
    relationship_id: int
    question: str
    date: date
    user_answer: Optional[str] = None
    partner_answer: Optional[str] = None
    chained: bool = False

    @property
    def is_answered(self):
        """True iff both partners have answered."""
        return bool(self.user_answer) and bool(self.partner_answer)

    def to_dict(self):
        return {
            'id': self.id,
            'relationshipId': self.relationship_id,
            'question': self.question,
            'userAnswer': self.user_answer,
            'partnerAnswer': self.partner_answer,
            'date': self.date.isoformat(),
            'isAnswered': self.is_answered,
        }


@dataclass(frozen=True)
class AnswerResult:
    """What recording an answer did. Only `triggered` results start a successor."""
    question: DailyQuestion
    outcome: AnswerOutcome
    triggered: bool = False


# =========================================================
# MEMORY
# =========================================================

@dataclass(frozen=True)
class Memory:
    id: int
    relationship_id: int
    title: str
    image_url: str
    date: datetime
    description: Optional[str] = None

    def to_dict(self):
        return {
            'id': self.id,
            'relationshipId': self.relationship_id,
            'title': self.title,
            'description': self.description,
            'imageUrl': self.image_url,
            'date': self.date.isoformat(),
        }
