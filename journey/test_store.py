import re
import threading
from datetime import date, datetime, timezone

from django.test import SimpleTestCase
from django.utils.timezone import is_aware

from .exceptions import Conflict, NotFound
from .models import AnswerOutcome, AnswerRole, LinkedRelationship, UnlinkedRelationship
from .store import Store, generate_partner_code

ANNIVERSARY = date(2024, 1, 1)


class IdentityStoreTests(SimpleTestCase):
    def setUp(self):
        self.store = Store()

    def test_ids_increment_and_lookup_by_username(self):
        alice = self.store.users.create('alice', 'hash-a')
        bob = self.store.users.create('bob', 'hash-b')

        self.assertEqual((alice.id, bob.id), (1, 2))
        self.assertEqual(self.store.users.get(bob.id), bob)
        self.assertEqual(self.store.users.find_by_username('alice'), alice)
        self.assertIsNone(self.store.users.find_by_username('carol'))

    def test_duplicate_username_conflicts(self):
        self.store.users.create('alice', 'hash-a')
        with self.assertRaises(Conflict):
            self.store.users.create('alice', 'other')

    def test_unknown_user_not_found(self):
        with self.assertRaises(NotFound):
            self.store.users.get(99)

    def test_set_password_replaces_hash(self):
        alice = self.store.users.create('alice', 'old')
        updated = self.store.users.set_password(alice.id, 'new')

        self.assertEqual(updated.password_hash, 'new')
        self.assertEqual(self.store.users.get(alice.id).password_hash, 'new')
        self.assertNotIn('password_hash', updated.to_dict())


class RelationshipRegistryTests(SimpleTestCase):
    def setUp(self):
        self.store = Store()
        self.registry = self.store.relationships

    def _create(self, user_id=1, **overrides):
        data = {'partner_name': 'Sam', 'anniversary_date': ANNIVERSARY}
        data.update(overrides)
        return self.registry.create(user_id, **data)

    def test_create_returns_unlinked_with_hex_code(self):
        relationship = self._create()

        self.assertIsInstance(relationship, UnlinkedRelationship)
        self.assertFalse(relationship.is_linked)
        self.assertIsNone(relationship.partner_user_id)
        self.assertRegex(relationship.partner_code, r'^[0-9A-F]{8}$')
        self.assertIsNone(relationship.description)
        self.assertEqual(relationship.to_dict()['partnerUserId'], None)

    def test_generated_codes_are_uppercase_hex(self):
        for _ in range(20):
            self.assertTrue(re.fullmatch(r'[0-9A-F]{8}', generate_partner_code()))

    def test_second_relationship_for_creator_conflicts(self):
        self._create(user_id=1)
        with self.assertRaises(Conflict):
            self._create(user_id=1, partner_name='Alex')

    def test_linked_partner_cannot_create_another(self):
        relationship = self._create(user_id=1)
        self.registry.link_partner(relationship.id, 2)

        with self.assertRaises(Conflict):
            self._create(user_id=2)

    def test_find_by_user_in_either_role(self):
        relationship = self._create(user_id=1)
        linked = self.registry.link_partner(relationship.id, 2)

        self.assertEqual(self.registry.find_by_user(1), linked)
        self.assertEqual(self.registry.find_by_user(2), linked)
        self.assertIsNone(self.registry.find_by_user(3))

    def test_find_by_partner_code_is_exact(self):
        registry = Store(code_factory=lambda: 'ABCDEF12').relationships
        relationship = registry.create(1, partner_name='Sam', anniversary_date=ANNIVERSARY)

        self.assertEqual(registry.find_by_partner_code('ABCDEF12'), relationship)
        self.assertIsNone(registry.find_by_partner_code('abcdef12'))

    def test_colliding_codes_are_regenerated(self):
        codes = iter(['AAAAAAAA', 'AAAAAAAA', 'AAAAAAAA', 'BBBBBBBB'])
        store = Store(code_factory=lambda: next(codes))

        first = store.relationships.create(1, partner_name='Sam', anniversary_date=ANNIVERSARY)
        second = store.relationships.create(2, partner_name='Alex', anniversary_date=ANNIVERSARY)

        self.assertEqual(first.partner_code, 'AAAAAAAA')
        self.assertEqual(second.partner_code, 'BBBBBBBB')

    def test_exhausted_code_attempts_conflict(self):
        store = Store(code_factory=lambda: 'AAAAAAAA', max_code_attempts=3)
        store.relationships.create(1, partner_name='Sam', anniversary_date=ANNIVERSARY)

        with self.assertRaises(Conflict):
            store.relationships.create(2, partner_name='Alex', anniversary_date=ANNIVERSARY)
        self.assertIsNone(store.relationships.find_by_user(2))

    def test_link_partner_is_one_shot(self):
        relationship = self._create(user_id=1)
        linked = self.registry.link_partner(relationship.id, 2)

        self.assertIsInstance(linked, LinkedRelationship)
        self.assertEqual(linked.partner_user_id, 2)
        self.assertEqual(linked.partner_code, relationship.partner_code)

        with self.assertRaises(Conflict):
            self.registry.link_partner(relationship.id, 3)
        self.assertEqual(self.registry.get(relationship.id).partner_user_id, 2)

    def test_link_rejects_self_link(self):
        relationship = self._create(user_id=1)
        with self.assertRaises(Conflict):
            self.registry.link_partner(relationship.id, 1)
        self.assertFalse(self.registry.get(relationship.id).is_linked)

    def test_link_rejects_user_with_relationship_elsewhere(self):
        mine = self._create(user_id=1)
        self._create(user_id=2, partner_name='Alex')

        with self.assertRaises(Conflict):
            self.registry.link_partner(mine.id, 2)

    def test_link_unknown_relationship_not_found(self):
        with self.assertRaises(NotFound):
            self.registry.link_partner(404, 2)

    def test_roles_of_participants(self):
        linked = self.registry.link_partner(self._create(user_id=1).id, 2)

        self.assertEqual(linked.role_of(1), AnswerRole.SELF)
        self.assertEqual(linked.role_of(2), AnswerRole.PARTNER)
        self.assertIsNone(linked.role_of(3))
        self.assertEqual(linked.partner_of(1), 2)
        self.assertEqual(linked.partner_of(2), 1)

    def test_update_keeps_code_and_participants(self):
        relationship = self._create(user_id=1, description='first date at the pier')
        linked = self.registry.link_partner(relationship.id, 2)

        updated = self.registry.update(linked.id, partner_name='Samantha', description='')

        self.assertEqual(updated.partner_name, 'Samantha')
        self.assertIsNone(updated.description)
        self.assertEqual(updated.partner_code, linked.partner_code)
        self.assertEqual(updated.partner_user_id, 2)

    def test_update_rejects_protected_fields(self):
        relationship = self._create()
        with self.assertRaises(TypeError):
            self.registry.update(relationship.id, partner_code='DEADBEEF')

    def test_update_refuses_empty_required_fields(self):
        relationship = self._create()

        with self.assertRaises(ValueError):
            self.registry.update(relationship.id, anniversary_date=None)
        with self.assertRaises(ValueError):
            self.registry.update(relationship.id, partner_name='')
        self.assertEqual(self.registry.get(relationship.id), relationship)


class QuestionLedgerTests(SimpleTestCase):
    def setUp(self):
        self.ledger = Store().questions

    def test_create_starts_open(self):
        question = self.ledger.create(1, 'What made you smile today?', date(2024, 5, 1))

        self.assertIsNone(question.user_answer)
        self.assertIsNone(question.partner_answer)
        self.assertFalse(question.is_answered)
        self.assertFalse(question.to_dict()['isAnswered'])

    def test_list_for_date_matches_calendar_day(self):
        may_first = self.ledger.create(1, 'Q1', date(2024, 5, 1))
        self.ledger.create(1, 'Q2', date(2024, 5, 2))
        self.ledger.create(2, 'Q3', date(2024, 5, 1))

        by_date = self.ledger.list_for_date(1, date(2024, 5, 1))
        by_datetime = self.ledger.list_for_date(1, datetime(2024, 5, 1, 23, 30, tzinfo=timezone.utc))

        self.assertEqual(by_date, [may_first])
        self.assertEqual(by_datetime, [may_first])

    def test_is_answered_only_when_both_slots_filled(self):
        question = self.ledger.create(1, 'Q', date(2024, 5, 1))

        first = self.ledger.record_answer(question.id, AnswerRole.SELF, 'X')
        self.assertFalse(first.question.is_answered)
        self.assertEqual(first.outcome, AnswerOutcome.PARTIALLY_ANSWERED)
        self.assertFalse(first.triggered)

        second = self.ledger.record_answer(question.id, AnswerRole.PARTNER, 'Y')
        self.assertTrue(second.question.is_answered)
        self.assertEqual(second.outcome, AnswerOutcome.FULLY_ANSWERED)
        self.assertTrue(second.triggered)
        self.assertEqual(second.question.user_answer, 'X')
        self.assertEqual(second.question.partner_answer, 'Y')

    def test_overwrite_after_full_answer_does_not_trigger_again(self):
        question = self.ledger.create(1, 'Q', date(2024, 5, 1))
        self.ledger.record_answer(question.id, AnswerRole.SELF, 'X')
        self.ledger.record_answer(question.id, AnswerRole.PARTNER, 'Y')

        again = self.ledger.record_answer(question.id, AnswerRole.SELF, 'X, edited')

        self.assertEqual(again.outcome, AnswerOutcome.FULLY_ANSWERED)
        self.assertFalse(again.triggered)
        self.assertEqual(again.question.user_answer, 'X, edited')

    def test_concurrent_final_answers_trigger_once(self):
        question = self.ledger.create(1, 'Q', date(2024, 5, 1))
        self.ledger.record_answer(question.id, AnswerRole.SELF, 'X')

        results = []

        def answer(n):
            results.append(self.ledger.record_answer(question.id, AnswerRole.PARTNER, f'Y{n}'))

        threads = [threading.Thread(target=answer, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sum(1 for r in results if r.triggered), 1)

    def test_seed_if_empty_creates_once(self):
        questions, seeded = self.ledger.seed_if_empty(1, date(2024, 5, 1), lambda: 'Q')
        self.assertEqual(questions, [seeded])

        again, seeded_again = self.ledger.seed_if_empty(1, date(2024, 5, 1), lambda: 'Other')
        self.assertIsNone(seeded_again)
        self.assertEqual(again, [seeded])

    def test_concurrent_seeds_create_one_question(self):
        start = threading.Barrier(8)
        seeded = []

        def seed():
            start.wait()
            seeded.append(self.ledger.seed_if_empty(1, date(2024, 5, 1), lambda: 'Q')[1])

        threads = [threading.Thread(target=seed) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sum(1 for s in seeded if s is not None), 1)
        self.assertEqual(len(self.ledger.list_for_date(1, date(2024, 5, 1))), 1)

    def test_seeded_with_both_answers_never_triggers(self):
        question = self.ledger.create(1, 'Q', date(2024, 5, 1), user_answer='X', partner_answer='Y')
        self.assertTrue(question.is_answered)

        result = self.ledger.record_answer(question.id, AnswerRole.PARTNER, 'Z')
        self.assertFalse(result.triggered)

    def test_unknown_question_not_found(self):
        with self.assertRaises(NotFound):
            self.ledger.record_answer(42, AnswerRole.SELF, 'X')


class MemoryLedgerTests(SimpleTestCase):
    def setUp(self):
        self.ledger = Store().memories

    def _create(self, title, when, relationship_id=1):
        return self.ledger.create(
            relationship_id,
            title=title,
            image_url=f'https://example.com/{title}.jpg',
            when=when,
        )

    def test_list_newest_first_with_stable_ties(self):
        self._create('picnic', datetime(2024, 3, 1, tzinfo=timezone.utc))
        self._create('concert', datetime(2024, 6, 1, tzinfo=timezone.utc))
        self._create('beach', datetime(2024, 3, 1, tzinfo=timezone.utc))
        self._create('elsewhere', datetime(2025, 1, 1, tzinfo=timezone.utc), relationship_id=2)

        titles = [m.title for m in self.ledger.list(1)]
        self.assertEqual(titles, ['concert', 'picnic', 'beach'])

    def test_plain_date_becomes_aware_midnight(self):
        memory = self._create('picnic', date(2024, 3, 1))

        self.assertTrue(is_aware(memory.date))
        self.assertEqual(memory.date.date(), date(2024, 3, 1))
        self.assertEqual(memory.date.hour, 0)

    def test_mixed_date_inputs_sort_together(self):
        self._create('picnic', date(2024, 3, 1))
        self._create('concert', datetime(2024, 6, 1, 20, 0, tzinfo=timezone.utc))
        self._create('ski trip', datetime(2023, 12, 30, 9, 0))

        titles = [m.title for m in self.ledger.list(1)]
        self.assertEqual(titles, ['concert', 'picnic', 'ski trip'])

    def test_delete_is_idempotent(self):
        memory = self._create('picnic', date(2024, 3, 1))

        self.ledger.delete(memory.id)
        self.ledger.delete(memory.id)
        self.ledger.delete(999)

        self.assertEqual(self.ledger.list(1), [])

    def test_delete_scoped_to_relationship(self):
        memory = self._create('picnic', date(2024, 3, 1), relationship_id=1)

        self.ledger.delete(memory.id, relationship_id=2)
        self.assertEqual(len(self.ledger.list(1)), 1)

        self.ledger.delete(memory.id, relationship_id=1)
        self.assertEqual(self.ledger.list(1), [])


class StoreTests(SimpleTestCase):
    def test_stats_counts_each_collection(self):
        store = Store()
        store.users.create('alice', 'hash')
        store.relationships.create(1, partner_name='Sam', anniversary_date=ANNIVERSARY)

        self.assertEqual(
            store.stats(),
            {'users': 1, 'relationships': 1, 'questions': 0, 'memories': 0},
        )
