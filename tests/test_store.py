#!/usr/bin/env python3
"""
Unit tests for the persistence helpers in alapio.core.

Covers the directory upsert, the append-only message log and the
conversation query:
- upsert is idempotent and keeps the latest values
- conversations are symmetric and ordered by timestamp
- duplicate message ids are rejected and the first row is kept
"""

import unittest
from unittest.mock import patch
from datetime import datetime, timedelta

from alapio.core.errors import DuplicateMessageIdError, StorageError
from alapio.core.message import append_message, get_conversation
from alapio.core.user import get_user, list_users, touch_last_seen, upsert_user
from alapio.models.base import utcnow
from alapio.models.message import Message, MessageType

from support import memory_session_factory


class TestUserStore(unittest.TestCase):

    def setUp(self):
        self.db = memory_session_factory()()

    def tearDown(self):
        self.db.close()

    def test_upsert_inserts_new_user(self):
        upsert_user(self.db, "u1", "Alice", "https://img/a.svg")

        users = list_users(self.db)
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0].id, "u1")
        self.assertEqual(users[0].username, "Alice")
        self.assertIsNotNone(users[0].last_seen)

    def test_upsert_twice_is_idempotent(self):
        upsert_user(self.db, "u1", "Alice", "a.svg")
        upsert_user(self.db, "u1", "Alice", "a.svg")

        self.assertEqual(len(list_users(self.db)), 1)

    def test_upsert_overwrites_username_and_avatar(self):
        upsert_user(self.db, "u1", "Alice", "a.svg")
        upsert_user(self.db, "u1", "Alicia", "b.svg")

        user = get_user(self.db, "u1")
        self.assertEqual(user.username, "Alicia")
        self.assertEqual(user.avatar, "b.svg")
        self.assertEqual(len(list_users(self.db)), 1)

    def test_upsert_leaves_last_seen_alone(self):
        upsert_user(self.db, "u1", "Alice", "a.svg")
        marker = datetime(2020, 1, 1, 12, 0, 0)
        touch_last_seen(self.db, "u1", marker)

        upsert_user(self.db, "u1", "Alicia", "a.svg")

        self.assertEqual(get_user(self.db, "u1").last_seen, marker)

    def test_upsert_after_losing_insert_race(self):
        factory = memory_session_factory()
        first, second = factory(), factory()
        real_get = first.get
        lookups = []

        def stale_get(*args, **kwargs):
            # The first lookup ran before the other tab committed
            lookups.append(args)
            if len(lookups) == 1:
                return None
            return real_get(*args, **kwargs)

        try:
            upsert_user(second, "u1", "Alice", "a.svg")
            with patch.object(first, "get", side_effect=stale_get):
                user = upsert_user(first, "u1", "Alice", "b.svg")

            self.assertEqual(user.avatar, "b.svg")
            self.assertEqual([u.id for u in list_users(second)], ["u1"])
        finally:
            first.close()
            second.close()

    def test_username_taken_by_other_id_is_storage_error(self):
        upsert_user(self.db, "u1", "Alice", "a.svg")

        with self.assertRaises(StorageError):
            upsert_user(self.db, "u2", "Alice", "b.svg")

        # Session is still usable and the first user is intact
        self.assertEqual([u.id for u in list_users(self.db)], ["u1"])

    def test_list_users_ordered_by_username(self):
        upsert_user(self.db, "u2", "Bob", "")
        upsert_user(self.db, "u1", "Alice", "")

        self.assertEqual([u.username for u in list_users(self.db)], ["Alice", "Bob"])

    def test_touch_last_seen(self):
        upsert_user(self.db, "u1", "Alice", "")
        when = datetime(2030, 5, 17, 8, 30)

        self.assertTrue(touch_last_seen(self.db, "u1", when))
        self.assertEqual(get_user(self.db, "u1").last_seen, when)

    def test_touch_last_seen_unknown_user(self):
        self.assertFalse(touch_last_seen(self.db, "ghost"))


class TestMessageStore(unittest.TestCase):

    def setUp(self):
        self.db = memory_session_factory()()

    def tearDown(self):
        self.db.close()

    def test_append_then_conversation_contains_message_once(self):
        append_message(self.db, "m1", "u1", "u2", content="hi")

        conversation = get_conversation(self.db, "u1", "u2")
        self.assertEqual([m.id for m in conversation], ["m1"])
        self.assertEqual(conversation[0].content, "hi")
        self.assertEqual(conversation[0].type, "text")

    def test_conversation_is_symmetric(self):
        append_message(self.db, "m1", "u1", "u2", content="hi")
        append_message(self.db, "m2", "u2", "u1", content="hello")

        forward = [m.id for m in get_conversation(self.db, "u1", "u2")]
        backward = [m.id for m in get_conversation(self.db, "u2", "u1")]
        self.assertEqual(forward, backward)
        self.assertEqual(sorted(forward), ["m1", "m2"])

    def test_conversation_ordered_by_timestamp(self):
        base = datetime(2024, 3, 1, 10, 0, 0)
        append_message(self.db, "late", "u1", "u2", content="3", timestamp=base + timedelta(minutes=2))
        append_message(self.db, "early", "u2", "u1", content="1", timestamp=base)
        append_message(self.db, "middle", "u1", "u2", content="2", timestamp=base + timedelta(minutes=1))

        conversation = get_conversation(self.db, "u1", "u2")
        self.assertEqual([m.id for m in conversation], ["early", "middle", "late"])
        timestamps = [m.timestamp for m in conversation]
        self.assertEqual(timestamps, sorted(timestamps))

    def test_conversation_excludes_other_pairs(self):
        append_message(self.db, "m1", "u1", "u2", content="for u2")
        append_message(self.db, "m2", "u1", "u3", content="for u3")
        append_message(self.db, "m3", "u3", "u2", content="u3 to u2")

        self.assertEqual([m.id for m in get_conversation(self.db, "u1", "u2")], ["m1"])

    def test_attachment_fields_are_stored(self):
        data_url = "data:image/png;base64," + "A" * 10_000
        append_message(
            self.db, "img", "u1", "u2",
            content="", type=MessageType.IMAGE, file_url=data_url, file_name="cat.png",
        )

        stored = get_conversation(self.db, "u1", "u2")[0]
        self.assertEqual(stored.type, "image")
        self.assertEqual(stored.file_url, data_url)
        self.assertEqual(stored.file_name, "cat.png")
        self.assertEqual(stored.content, "")

    def test_server_assigns_timestamp(self):
        before = utcnow() - timedelta(seconds=1)
        message = append_message(self.db, "m1", "u1", "u2", content="hi")
        self.assertGreaterEqual(message.timestamp, before)

    def test_duplicate_id_rejected_and_first_row_kept(self):
        append_message(self.db, "m1", "u1", "u2", content="first")

        with self.assertRaises(DuplicateMessageIdError) as ctx:
            append_message(self.db, "m1", "u1", "u2", content="second")

        self.assertEqual(ctx.exception.message_id, "m1")
        self.assertIsInstance(ctx.exception, StorageError)

        rows = self.db.query(Message).filter(Message.id == "m1").all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].content, "first")

    def test_empty_conversation(self):
        self.assertEqual(get_conversation(self.db, "u1", "u2"), [])


if __name__ == "__main__":
    unittest.main()
