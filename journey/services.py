"""
Love Journey - Services
=======================

Operations the API layer calls. Each one takes the Store explicitly and
combines registry/ledger calls with the rules that span them:

- pairing: create a relationship, link to one with a partner code
- daily questions: auto-seed today's question, resolve the caller's answer
  role, and chain a successor when both partners have answered
- memories: scoped to the caller's relationship
"""

import logging

from django.contrib.auth.hashers import check_password, make_password
from django.utils import timezone

from .exceptions import Forbidden, NotFound, PartnerRequired
from .models import AnswerRole
from .prompts import random_prompt

logger = logging.getLogger(__name__)


def today():
    """Today's date in the configured TIME_ZONE."""
    return timezone.localdate()


# =============================================================================
# ACCOUNTS
# =============================================================================

def register_user(store, username, password):
    user = store.users.create(username, make_password(password))
    logger.info('Registered user %s (id=%s)', user.username, user.id)
    return user


def authenticate_user(store, username, password):
    """Return the user if the credentials match, otherwise None."""
    user = store.users.find_by_username(username)
    if user is None or not check_password(password, user.password_hash):
        return None
    return user


def change_password(store, user_id, password):
    return store.users.set_password(user_id, make_password(password))


# =============================================================================
# PAIRING
# =============================================================================

def normalize_partner_code(code):
    """Codes are shown upper-case; accept whatever the partner typed."""
    return (code or '').strip().upper()


def create_relationship(store, user_id, partner_name, anniversary_date, description=None):
    relationship = store.relationships.create(
        user_id,
        partner_name=partner_name,
        anniversary_date=anniversary_date,
        description=description,
    )
    logger.info(
        'Relationship %s created by user %s (code %s)',
        relationship.id, user_id, relationship.partner_code,
    )
    return relationship


def link_with_code(store, user_id, partner_code):
    """Join the relationship behind a partner code."""
    relationship = store.relationships.find_by_partner_code(normalize_partner_code(partner_code))
    if relationship is None:
        raise NotFound('Invalid partner code')

    linked = store.relationships.link_partner(relationship.id, user_id)
    logger.info('User %s linked to relationship %s', user_id, linked.id)
    return linked


def get_relationship_for(store, user_id, require_partner=False):
    """
    The caller's relationship.

    Raises NotFound when the user has none, and PartnerRequired when
    `require_partner` is set and nobody has entered the code yet.
    """
    relationship = store.relationships.find_by_user(user_id)
    if relationship is None:
        raise NotFound('No relationship found')
    if require_partner and not relationship.is_linked:
        raise PartnerRequired('Need a partner to continue')
    return relationship


def update_relationship(store, user_id, **changes):
    relationship = get_relationship_for(store, user_id)
    return store.relationships.update(relationship.id, **changes)


# =============================================================================
# DAILY QUESTIONS
# =============================================================================

def create_question(store, relationship, text=None, day=None, rng=None):
    """New question for the relationship; a random prompt when no text is given."""
    question = store.questions.create(
        relationship.id,
        text or random_prompt(rng),
        day or today(),
    )
    return question


def questions_for_date(store, relationship, day, rng=None):
    """
    List a day's questions.
    Today's list is never empty: the first visit of the day seeds a question.
    """
    if day != today():
        return store.questions.list_for_date(relationship.id, day)

    questions, seeded = store.questions.seed_if_empty(
        relationship.id, day, lambda: random_prompt(rng),
    )
    if seeded is not None:
        logger.info('Seeded question %s for relationship %s', seeded.id, relationship.id)
    return questions


def answer_question(store, user_id, question_id, text, role=None, rng=None):
    """
    Record the caller's answer.

    The caller may only write their own slot: the creator answers as SELF,
    the linked partner as PARTNER. Naming the other role raises Forbidden.

    Returns (AnswerResult, successor). `successor` is the chained question
    created when this answer completed the pair, otherwise None.
    """
    relationship = get_relationship_for(store, user_id)
    caller_role = relationship.role_of(user_id)
    if role is not None and AnswerRole(role) != caller_role:
        raise Forbidden("You can only answer your own side")

    question = store.questions.get(question_id)
    if question.relationship_id != relationship.id:
        raise NotFound('Question not found', details=f'question_id={question_id}')

    result = store.questions.record_answer(question_id, caller_role, text)

    successor = None
    if result.triggered:
        successor = create_question(store, relationship, rng=rng)
        logger.info(
            'Question %s fully answered, chained question %s for relationship %s',
            question_id, successor.id, relationship.id,
        )
    return result, successor


# =============================================================================
# MEMORIES
# =============================================================================

def create_memory(store, relationship, title, image_url, when, description=None):
    return store.memories.create(
        relationship.id,
        title=title,
        image_url=image_url,
        when=when,
        description=description,
    )


def list_memories(store, relationship):
    return store.memories.list(relationship.id)


def delete_memory(store, relationship, memory_id):
    store.memories.delete(memory_id, relationship_id=relationship.id)
