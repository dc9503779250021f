import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from google.api_core import exceptions
from google.cloud.firestore_v1 import Query

from backend.firestore_db import FirestoreDbClient
from shared.errors import NotFoundError
from shared.types import Article, SeriesEntry, UserProfile


def _snapshot(data, doc_id="doc"):
    snapshot = MagicMock()
    snapshot.exists = data is not None
    snapshot.id = doc_id
    snapshot.to_dict.return_value = dict(data) if data is not None else None
    return snapshot


class FirestoreDbClientTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.doc_ref = self.client.collection.return_value.document.return_value
        self.db = FirestoreDbClient(self.client)

    def test_add_tag_uses_create(self):
        self.assertTrue(self.db.add_tag("math"))
        self.client.collection.assert_called_with("tags")
        self.doc_ref.create.assert_called_once_with({"name": "math"})

    def test_add_existing_tag_is_noop(self):
        self.doc_ref.create.side_effect = exceptions.Conflict("exists")
        self.assertFalse(self.db.add_tag("math"))

    def test_get_user_defaults_missing_xp(self):
        self.doc_ref.get.return_value = _snapshot({"displayName": "Ann"}, doc_id="u1")
        user = self.db.get_user("u1")
        self.assertEqual(user.uid, "u1")
        self.assertEqual((user.xp, user.level), (0, 1))

    def test_get_missing_article(self):
        self.doc_ref.get.return_value = _snapshot(None)
        self.assertIsNone(self.db.get_article("missing"))

    def test_save_user_writes_camel_case(self):
        self.db.save_user(UserProfile(uid="u1", display_name="Ann", xp=130))
        payload = self.doc_ref.set.call_args[0][0]
        self.assertEqual(payload["displayName"], "Ann")
        self.assertEqual(payload["level"], 2)

    def test_append_series_entry_uses_array_union(self):
        self.db.append_series_entry("s1", SeriesEntry("a1", 2, "Two"))
        update = self.doc_ref.update.call_args[0][0]
        self.assertIn("articles", update)

    def test_append_to_missing_series(self):
        self.doc_ref.update.side_effect = exceptions.NotFound("missing")
        with self.assertRaises(NotFoundError):
            self.db.append_series_entry("s1", SeriesEntry("a1", 2, "Two"))

    def test_save_article_keeps_created_at_literal(self):
        self.db.save_article(
            Article(id="a1", title="T", content="c", author_id="u1", created_at=12.5)
        )
        payload = self.doc_ref.set.call_args[0][0]
        self.assertEqual(payload["created_at"], 12.5)
        self.assertNotIn("createdAt", payload)
        self.assertEqual(payload["authorId"], "u1")

    def test_server_timestamp_reads_as_epoch_seconds(self):
        written = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.doc_ref.get.return_value = _snapshot(
            {"id": "a1", "title": "T", "content": "c", "authorId": "u1", "created_at": written}
        )
        article = self.db.get_article("a1")
        self.assertIsInstance(article.created_at, float)
        self.assertEqual(article.created_at, written.timestamp())

    def test_list_articles_orders_by_created_at(self):
        query = self.client.collection.return_value.order_by.return_value
        query.limit.return_value.stream.return_value = [
            _snapshot({"id": "a1", "title": "T", "content": "c", "authorId": "u1"})
        ]
        articles = self.db.list_articles(limit=5)
        self.client.collection.return_value.order_by.assert_called_once_with(
            "created_at", direction=Query.DESCENDING
        )
        query.limit.assert_called_once_with(5)
        self.assertEqual([a.id for a in articles], ["a1"])

    def test_list_articles_without_limit_streams_everything(self):
        query = self.client.collection.return_value.order_by.return_value
        query.stream.return_value = []
        self.assertEqual(self.db.list_articles(limit=None), [])
        query.limit.assert_not_called()

    def test_get_key(self):
        self.doc_ref.get.return_value = _snapshot({"key": "secret"})
        self.assertEqual(self.db.get_key("doc"), {"key": "secret"})


if __name__ == "__main__":
    unittest.main()
