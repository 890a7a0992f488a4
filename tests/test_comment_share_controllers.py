import unittest
from unittest import mock

from fastapi import HTTPException

from snapgram.config import COMMENTS_COLLECTION_ID, NOTIFICATIONS_COLLECTION_ID
from snapgram.controllers import comment_controller, share_controller

from support import fresh_store, make_post, make_user


class CommentControllerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = fresh_store()
        self.alice = await make_user(self.store, "alice")
        self.bob = await make_user(self.store, "bob")
        self.post = await make_post(self.store, self.alice["id"])

    async def test_create_comment_embeds_author_and_notifies(self):
        comment = await comment_controller.create_comment(self.post["id"], self.bob["id"], "Lovely shot")
        self.assertEqual(comment["user"]["username"], "bob")

        notifications = (await self.store.list_documents(NOTIFICATIONS_COLLECTION_ID))["documents"]
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0]["type"], "comment")
        self.assertEqual(notifications[0]["user_id"], self.alice["id"])

    async def test_comment_on_missing_post(self):
        with self.assertRaises(HTTPException) as ctx:
            await comment_controller.create_comment("missing", self.bob["id"], "Hello")
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_failed_notification_removes_comment(self):
        failing = mock.AsyncMock(side_effect=RuntimeError("notifications down"))
        with mock.patch("snapgram.controllers.notification_controller.create_notification", failing):
            with self.assertRaises(HTTPException):
                await comment_controller.create_comment(self.post["id"], self.bob["id"], "Lovely shot")
        self.assertEqual((await self.store.list_documents(COMMENTS_COLLECTION_ID))["total"], 0)

    async def test_comments_oldest_first(self):
        await comment_controller.create_comment(self.post["id"], self.bob["id"], "first")
        await comment_controller.create_comment(self.post["id"], self.alice["id"], "second")

        result = await comment_controller.get_post_comments(self.post["id"])
        self.assertEqual(result["total"], 2)
        self.assertEqual([c["content"] for c in result["comments"]], ["first", "second"])
        self.assertEqual(result["comments"][1]["user"]["username"], "alice")

    async def test_only_author_can_edit_or_delete(self):
        comment = await comment_controller.create_comment(self.post["id"], self.bob["id"], "typo")

        with self.assertRaises(HTTPException) as ctx:
            await comment_controller.update_comment(comment["id"], self.alice["id"], "hijacked")
        self.assertEqual(ctx.exception.status_code, 403)
        with self.assertRaises(HTTPException) as ctx:
            await comment_controller.delete_comment(comment["id"], self.alice["id"])
        self.assertEqual(ctx.exception.status_code, 403)

        updated = await comment_controller.update_comment(comment["id"], self.bob["id"], "fixed")
        self.assertEqual(updated["content"], "fixed")
        await comment_controller.delete_comment(comment["id"], self.bob["id"])
        self.assertEqual((await comment_controller.get_post_comments(self.post["id"]))["total"], 0)


class ShareControllerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = fresh_store()
        self.alice = await make_user(self.store, "alice")
        self.post = await make_post(self.store, self.alice["id"])

    async def test_shares_are_counted(self):
        await share_controller.share_post(self.post["id"], self.alice["id"])
        await share_controller.share_post(self.post["id"], self.alice["id"], platform="twitter")
        self.assertEqual(await share_controller.get_post_shares_count(self.post["id"]), 2)

    async def test_share_missing_post(self):
        with self.assertRaises(HTTPException) as ctx:
            await share_controller.share_post("missing", self.alice["id"])
        self.assertEqual(ctx.exception.status_code, 404)


if __name__ == "__main__":
    unittest.main()
