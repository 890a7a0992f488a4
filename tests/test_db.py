import unittest

from snapgram.db import (
    DocumentConflictError,
    DocumentNotFoundError,
    InMemoryDocumentStore,
    Query,
    plan_queries,
)
from snapgram.realtime import RealtimeHub, documents_channel


class InMemoryDocumentStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.hub = RealtimeHub()
        self.store = InMemoryDocumentStore(hub=self.hub)

    async def test_create_and_get(self):
        created = await self.store.create_document("posts", {"caption": "hi", "likes": []})
        self.assertTrue(created["id"])
        self.assertEqual(created["created_at"], created["updated_at"])

        fetched = await self.store.get_document("posts", created["id"])
        self.assertEqual(fetched, created)

    async def test_explicit_id_is_unique(self):
        await self.store.create_document("follows", {"follower_id": "a"}, document_id="a_b")
        with self.assertRaises(DocumentConflictError):
            await self.store.create_document("follows", {"follower_id": "a"}, document_id="a_b")

    async def test_missing_documents_raise(self):
        with self.assertRaises(DocumentNotFoundError):
            await self.store.get_document("posts", "nope")
        with self.assertRaises(DocumentNotFoundError):
            await self.store.update_document("posts", "nope", {"caption": "x"})
        with self.assertRaises(DocumentNotFoundError):
            await self.store.delete_document("posts", "nope")

    async def test_returned_documents_are_copies(self):
        created = await self.store.create_document("posts", {"likes": ["u1"]})
        created["likes"].append("u2")
        fetched = await self.store.get_document("posts", created["id"])
        self.assertEqual(fetched["likes"], ["u1"])

    async def test_list_filters_orders_and_limits(self):
        for i in range(5):
            await self.store.create_document("posts", {"creator": "u1" if i % 2 == 0 else "u2", "n": i})

        result = await self.store.list_documents(
            "posts", [Query.equal("creator", "u1"), Query.order_desc("n"), Query.limit(2)]
        )
        self.assertEqual(result["total"], 3)
        self.assertEqual([d["n"] for d in result["documents"]], [4, 2])

        any_of = await self.store.list_documents("posts", [Query.equal("n", [1, 3])])
        self.assertEqual(sorted(d["n"] for d in any_of["documents"]), [1, 3])

    async def test_default_order_is_insertion(self):
        ids = [(await self.store.create_document("posts", {"n": i}))["id"] for i in range(4)]
        result = await self.store.list_documents("posts")
        self.assertEqual([d["id"] for d in result["documents"]], ids)

    async def test_cursor_pagination(self):
        ids = [(await self.store.create_document("posts", {"n": i}))["id"] for i in range(5)]
        first = await self.store.list_documents("posts", [Query.order_desc("created_at"), Query.limit(2)])
        self.assertEqual([d["id"] for d in first["documents"]], [ids[4], ids[3]])

        second = await self.store.list_documents(
            "posts", [Query.order_desc("created_at"), Query.limit(2), Query.cursor_after(ids[3])]
        )
        self.assertEqual([d["id"] for d in second["documents"]], [ids[2], ids[1]])
        self.assertEqual(second["total"], 5)

    async def test_unknown_cursor_raises(self):
        with self.assertRaises(DocumentNotFoundError):
            await self.store.list_documents("posts", [Query.cursor_after("missing")])

    async def test_search_is_case_insensitive(self):
        await self.store.create_document("posts", {"caption": "Sunset at the Beach"})
        await self.store.create_document("posts", {"caption": "Mountain hike"})
        result = await self.store.list_documents("posts", [Query.search("caption", "beach")])
        self.assertEqual(result["total"], 1)

    async def test_list_membership_is_set_like(self):
        post = await self.store.create_document("posts", {"likes": []})
        await self.store.add_to_list("posts", post["id"], "likes", "u1")
        updated = await self.store.add_to_list("posts", post["id"], "likes", "u1")
        self.assertEqual(updated["likes"], ["u1"])

        updated = await self.store.remove_from_list("posts", post["id"], "likes", "u1")
        self.assertEqual(updated["likes"], [])

    async def test_writes_publish_events(self):
        events = []
        self.hub.subscribe(documents_channel("posts"), events.append)

        post = await self.store.create_document("posts", {"caption": "hi"})
        await self.store.update_document("posts", post["id"], {"caption": "hello"})
        await self.store.delete_document("posts", post["id"])

        actions = [e["events"][0].rsplit(".", 1)[-1] for e in events]
        self.assertEqual(actions, ["create", "update", "delete"])
        self.assertEqual(events[1]["payload"]["caption"], "hello")
        self.assertIn(documents_channel("posts", post["id"]), events[0]["channels"])


class QueryPlanTests(unittest.TestCase):
    def test_rejects_unsafe_field_names(self):
        with self.assertRaises(ValueError):
            plan_queries([Query.equal("likes` = 1 //", "x")])

    def test_collects_clauses(self):
        plan = plan_queries([Query.order_desc("created_at"), Query.limit(9), Query.cursor_after("abc")])
        self.assertTrue(plan.descending)
        self.assertEqual(plan.limit, 9)
        self.assertEqual(plan.cursor, "abc")

    def test_rejects_negative_limit(self):
        with self.assertRaises(ValueError):
            plan_queries([Query.limit(-1)])

    def test_zero_limit_only_counts(self):
        self.assertEqual(plan_queries([Query.limit(0)]).limit, 0)


if __name__ == "__main__":
    unittest.main()
