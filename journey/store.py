"""
Love Journey - In-Memory Store
==============================

Four collections, each a dict keyed by an auto-incrementing integer id:

- IdentityStore         - users
- RelationshipRegistry  - pairings and partner codes
- QuestionLedger        - daily questions and their two answer slots
- MemoryLedger          - shared memories

`Store` bundles them. One Store is built per process by the app config
(see journey.apps) and passed to the services; nothing here is a module
level singleton.

Every collection guards its dict and id sequence with its own lock, so the
store is safe under Django's threaded dev server and gunicorn threads.
Failures are raised as journey.exceptions types and never logged here.
"""

import itertools
import secrets
import threading
from dataclasses import replace
from datetime import date, datetime, time
from typing import Callable, Dict, List, Optional, Tuple

from django.utils import timezone

from .exceptions import Conflict, NotFound
from .models import (
    AnswerOutcome,
    AnswerResult,
    AnswerRole,
    DailyQuestion,
    Memory,
    UnlinkedRelationship,
    User,
)

DEFAULT_PARTNER_CODE_ATTEMPTS = 16


def generate_partner_code():
    """4 random bytes as 8 uppercase hex characters, e.g. '9F03B2C1'."""
    return secrets.token_hex(4).upper()


class _Collection:
    """A locked dict of records plus its id sequence."""

    def __init__(self):
        self._rows = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _next_id(self):
        return next(self._ids)

    def __len__(self):
        with self._lock:
            return len(self._rows)


# =============================================================================
# IDENTITY
# =============================================================================

class IdentityStore(_Collection):
    """User records. Usernames are unique (exact match)."""

    def create(self, username: str, password_hash: str) -> User:
        with self._lock:
            if any(u.username == username for u in self._rows.values()):
                raise Conflict('Username already exists', details=f'username={username}')
            user = User(id=self._next_id(), username=username, password_hash=password_hash)
            self._rows[user.id] = user
            return user

    def get(self, user_id: int) -> User:
        with self._lock:
            user = self._rows.get(user_id)
        if user is None:
            raise NotFound('User not found', details=f'user_id={user_id}')
        return user

    def find_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._rows.values() if u.username == username), None)

    def set_password(self, user_id: int, password_hash: str) -> User:
        with self._lock:
            user = self._rows.get(user_id)
            if user is None:
                raise NotFound('User not found', details=f'user_id={user_id}')
            user = replace(user, password_hash=password_hash)
            self._rows[user_id] = user
            return user


# =============================================================================
# RELATIONSHIPS
# =============================================================================

class RelationshipRegistry(_Collection):
    """
    Pairing records.

    Invariants held under the registry lock:
    - a user appears in at most one relationship, in either role
    - partner codes are unique and never change
    - partner_user_id goes from absent to set exactly once
    """

    def __init__(
        self,
        code_factory: Callable[[], str] = generate_partner_code,
        max_code_attempts: int = DEFAULT_PARTNER_CODE_ATTEMPTS,
    ):
        super().__init__()
        self._code_factory = code_factory
        self._max_code_attempts = max_code_attempts

    def _find_by_user(self, user_id):
        return next((r for r in self._rows.values() if r.includes_user(user_id)), None)

    def _unique_code(self):
        taken = {r.partner_code for r in self._rows.values()}
        for _ in range(self._max_code_attempts):
            code = self._code_factory()
            if code not in taken:
                return code
        raise Conflict(
            'Could not generate a unique partner code',
            details=f'attempts={self._max_code_attempts}',
        )

    def create(
        self,
        user_id: int,
        partner_name: str,
        anniversary_date: date,
        description: Optional[str] = None,
    ) -> UnlinkedRelationship:
        with self._lock:
            if self._find_by_user(user_id) is not None:
                raise Conflict('User already has a relationship', details=f'user_id={user_id}')
            relationship = UnlinkedRelationship(
                id=self._next_id(),
                user_id=user_id,
                partner_name=partner_name,
                partner_code=self._unique_code(),
                anniversary_date=anniversary_date,
                description=description or None,
            )
            self._rows[relationship.id] = relationship
            return relationship

    def get(self, relationship_id: int):
        with self._lock:
            relationship = self._rows.get(relationship_id)
        if relationship is None:
            raise NotFound('Relationship not found', details=f'relationship_id={relationship_id}')
        return relationship

    def find_by_user(self, user_id: int):
        """The relationship the user created or joined, if any."""
        with self._lock:
            return self._find_by_user(user_id)

    def find_by_partner_code(self, code: str):
        with self._lock:
            return next((r for r in self._rows.values() if r.partner_code == code), None)

    def link_partner(self, relationship_id: int, candidate_user_id: int):
        """Fill the second participant slot. One-shot."""
        with self._lock:
            relationship = self._rows.get(relationship_id)
            if relationship is None:
                raise NotFound('Relationship not found', details=f'relationship_id={relationship_id}')
            if relationship.is_linked:
                raise Conflict('This relationship already has a partner')
            if relationship.user_id == candidate_user_id:
                raise Conflict('Cannot link with your own relationship')
            if self._find_by_user(candidate_user_id) is not None:
                raise Conflict('You are already in a relationship')

            linked = relationship.linked_to(candidate_user_id)
            self._rows[relationship_id] = linked
            return linked

    def update(self, relationship_id: int, **changes):
        """Edit descriptive fields. Codes and participants are not editable."""
        allowed = {'partner_name', 'anniversary_date', 'description'}
        unknown = set(changes) - allowed
        if unknown:
            raise TypeError(f'Cannot update fields: {", ".join(sorted(unknown))}')
        for required in ('partner_name', 'anniversary_date'):
            if required in changes and not changes[required]:
                raise ValueError(f'{required} cannot be empty')

        with self._lock:
            relationship = self._rows.get(relationship_id)
            if relationship is None:
                raise NotFound('Relationship not found', details=f'relationship_id={relationship_id}')
            if 'description' in changes:
                changes['description'] = changes['description'] or None
            relationship = replace(relationship, **changes)
            self._rows[relationship_id] = relationship
            return relationship


# =============================================================================
# DAILY QUESTIONS
# =============================================================================

def _calendar_day(value):
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


class QuestionLedger(_Collection):
    """Daily questions, each scoped to one relationship and one calendar day."""

    def _insert(self, relationship_id, question, day, user_answer=None, partner_answer=None):
        # Caller holds the lock
        record = DailyQuestion(
            id=self._next_id(),
            relationship_id=relationship_id,
            question=question,
            date=_calendar_day(day),
            user_answer=user_answer or None,
            partner_answer=partner_answer or None,
        )
        # Seeded fully answered: nothing left to chain from it
        if record.is_answered:
            record = replace(record, chained=True)
        self._rows[record.id] = record
        return record

    def _for_date(self, relationship_id, day):
        return [
            q for q in self._rows.values()
            if q.relationship_id == relationship_id and q.date == day
        ]

    def create(
        self,
        relationship_id: int,
        question: str,
        day: date,
        user_answer: Optional[str] = None,
        partner_answer: Optional[str] = None,
    ) -> DailyQuestion:
        with self._lock:
            return self._insert(relationship_id, question, day, user_answer, partner_answer)

    def seed_if_empty(
        self,
        relationship_id: int,
        day,
        text_factory: Callable[[], str],
    ) -> Tuple[List[DailyQuestion], Optional[DailyQuestion]]:
        """
        A day's questions, creating one from `text_factory` when there are none.

        The check and the insert share one locked step, so concurrent callers
        seed at most one question. Returns (questions, seeded or None).
        """
        day = _calendar_day(day)
        with self._lock:
            questions = self._for_date(relationship_id, day)
            if questions:
                return questions, None
            seeded = self._insert(relationship_id, text_factory(), day)
            return [seeded], seeded

    def get(self, question_id: int) -> DailyQuestion:
        with self._lock:
            record = self._rows.get(question_id)
        if record is None:
            raise NotFound('Question not found', details=f'question_id={question_id}')
        return record

    def list_for_date(self, relationship_id: int, day) -> List[DailyQuestion]:
        """Questions of a relationship on one calendar day, oldest first."""
        day = _calendar_day(day)
        with self._lock:
            return self._for_date(relationship_id, day)

    def count_for_relationship(self, relationship_id: int) -> int:
        with self._lock:
            return sum(1 for q in self._rows.values() if q.relationship_id == relationship_id)

    def record_answer(self, question_id: int, role: AnswerRole, text: str) -> AnswerResult:
        """
        Write one partner's answer slot.

        `triggered` is True only for the write that fills both slots for the
        first time; the `chained` flag is flipped in the same locked step so a
        successor is never requested twice for the same question.
        """
        role = AnswerRole(role)
        slot = 'user_answer' if role == AnswerRole.SELF else 'partner_answer'

        with self._lock:
            record = self._rows.get(question_id)
            if record is None:
                raise NotFound('Question not found', details=f'question_id={question_id}')

            record = replace(record, **{slot: text or None})
            triggered = record.is_answered and not record.chained
            if triggered:
                record = replace(record, chained=True)
            self._rows[question_id] = record

        outcome = (
            AnswerOutcome.FULLY_ANSWERED if record.is_answered
            else AnswerOutcome.PARTIALLY_ANSWERED
        )
        return AnswerResult(question=record, outcome=outcome, triggered=triggered)


# =============================================================================
# MEMORIES
# =============================================================================

class MemoryLedger(_Collection):
    """Shared memories. Create and delete only; no edits."""

    def create(
        self,
        relationship_id: int,
        title: str,
        image_url: str,
        when,
        description: Optional[str] = None,
    ) -> Memory:
        # Always aware, so memories from any input compare when sorted
        if not isinstance(when, datetime):
            when = datetime.combine(when, time.min)
        if timezone.is_naive(when):
            when = timezone.make_aware(when)
        with self._lock:
            memory = Memory(
                id=self._next_id(),
                relationship_id=relationship_id,
                title=title,
                image_url=image_url,
                date=when,
                description=description or None,
            )
            self._rows[memory.id] = memory
            return memory

    def list(self, relationship_id: int) -> List[Memory]:
        """Newest first. sorted() is stable, so equal dates keep insertion order."""
        with self._lock:
            rows = [m for m in self._rows.values() if m.relationship_id == relationship_id]
        return sorted(rows, key=lambda m: m.date, reverse=True)

    def delete(self, memory_id: int, relationship_id: Optional[int] = None) -> None:
        """
        Remove a memory. Unknown ids are not an error.
        With `relationship_id`, memories owned by another relationship are left alone.
        """
        with self._lock:
            memory = self._rows.get(memory_id)
            if memory is None:
                return
            if relationship_id is not None and memory.relationship_id != relationship_id:
                return
            del self._rows[memory_id]


# =============================================================================
# STORE
# =============================================================================

class Store:
    """Everything the API layer reads and writes, built once per process."""

    def __init__(
        self,
        code_factory: Callable[[], str] = generate_partner_code,
        max_code_attempts: int = DEFAULT_PARTNER_CODE_ATTEMPTS,
    ):
        self.users = IdentityStore()
        self.relationships = RelationshipRegistry(
            code_factory=code_factory,
            max_code_attempts=max_code_attempts,
        )
        self.questions = QuestionLedger()
        self.memories = MemoryLedger()

    def stats(self) -> Dict[str, int]:
        """Row counts per collection."""
        return {
            'users': len(self.users),
            'relationships': len(self.relationships),
            'questions': len(self.questions),
            'memories': len(self.memories),
        }
