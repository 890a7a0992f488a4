import unittest

from fastapi.testclient import TestClient

from snapgram.config import POSTS_COLLECTION_ID
from snapgram.main import app
from snapgram.realtime import documents_channel, get_realtime_hub

from support import fresh_store

PASSWORD = "correct-horse-battery"


class RoutesTests(unittest.TestCase):
    def setUp(self):
        self.store = fresh_store(hub=get_realtime_hub())
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)

    def register(self, username: str) -> dict:
        response = self.client.post("/users/register", json={
            "name": username.title(),
            "username": username,
            "email": f"{username}@snapgram.io",
            "password": PASSWORD,
        })
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def login(self, username: str) -> dict:
        response = self.client.post("/users/login", json={"email": f"{username}@snapgram.io", "password": PASSWORD})
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    def test_register_login_and_me(self):
        user = self.register("alice")
        self.assertEqual(user["username"], "alice")
        self.assertIn("/avatars/initials?name=Alice", user["image_url"])
        self.assertNotIn("password", user)

        headers = self.login("alice")
        me = self.client.get("/users/me", headers=headers)
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["id"], user["id"])
        self.assertEqual(me.json()["saved_post_ids"], [])

    def test_duplicate_registration(self):
        self.register("alice")
        response = self.client.post("/users/register", json={
            "name": "Other",
            "username": "alice",
            "email": "other@snapgram.io",
            "password": PASSWORD,
        })
        self.assertEqual(response.status_code, 409)

    def test_wrong_password(self):
        self.register("alice")
        response = self.client.post("/users/login", json={"email": "alice@snapgram.io", "password": "not-the-password"})
        self.assertEqual(response.status_code, 401)

    def test_logout_invalidates_token(self):
        self.register("alice")
        headers = self.login("alice")

        self.assertEqual(self.client.post("/users/logout", headers=headers).status_code, 200)
        self.assertEqual(self.client.get("/users/me", headers=headers).status_code, 401)

    def test_protected_routes_need_token(self):
        self.assertIn(self.client.get("/users/me").status_code, (401, 403))
        response = self.client.get("/users/me", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(response.status_code, 401)

    def test_post_like_and_notifications(self):
        self.register("alice")
        self.register("bob")
        alice = self.login("alice")
        bob = self.login("bob")

        created = self.client.post("/posts/", data={"caption": "Sunset at the beach", "tags": "a,b,c"}, headers=alice)
        self.assertEqual(created.status_code, 201, created.text)
        post = created.json()
        self.assertEqual(post["tags"], ["a", "b", "c"])

        liked = self.client.post(f"/posts/{post['id']}/like", headers=bob)
        self.assertTrue(liked.json()["liked"])
        again = self.client.put(f"/posts/{post['id']}/like", params={"liked": "true"}, headers=bob)
        self.assertEqual(len(again.json()["post"]["likes"]), 1)

        inbox = self.client.get("/notifications/", headers=alice).json()
        self.assertEqual(inbox["unread_count"], 1)
        self.assertEqual(inbox["notifications"][0]["type"], "like")

        feed = self.client.get("/posts/feed").json()
        self.assertEqual(feed["total"], 1)

    def test_follow_flow(self):
        self.register("alice")
        bob_user = self.register("bob")
        alice = self.login("alice")
        bob = self.login("bob")

        first = self.client.post("/follows/", json={"following_id": bob_user["id"]}, headers=alice)
        self.assertEqual(first.status_code, 200, first.text)
        self.assertTrue(first.json()["created"])
        second = self.client.post("/follows/", json={"following_id": bob_user["id"]}, headers=alice)
        self.assertFalse(second.json()["created"])

        status = self.client.get(f"/follows/{bob_user['id']}/status", headers=alice).json()
        self.assertTrue(status["is_following"])
        counts = self.client.get(f"/follows/{bob_user['id']}/counts").json()
        self.assertEqual(counts, {"followers": 1, "following": 0})

        inbox = self.client.get("/notifications/", headers=bob).json()
        self.assertEqual(len(inbox["notifications"]), 1)
        self.assertEqual(inbox["notifications"][0]["message"], "Alice started following you")

        read_all = self.client.put("/notifications/read-all", headers=bob).json()
        self.assertEqual(read_all["count"], 1)
        self.assertEqual(self.client.get("/notifications/", headers=bob).json()["unread_count"], 0)

        cleared = self.client.delete("/notifications/", headers=bob).json()
        self.assertEqual(cleared["count"], 1)

        unfollowed = self.client.delete(f"/follows/{bob_user['id']}", headers=alice)
        self.assertEqual(unfollowed.json()["deleted"], 1)
        status = self.client.get(f"/follows/{bob_user['id']}/status", headers=alice).json()
        self.assertFalse(status["is_following"])

    def test_mark_single_notification_read(self):
        self.register("alice")
        bob_user = self.register("bob")
        alice = self.login("alice")
        bob = self.login("bob")
        self.client.post("/follows/", json={"following_id": bob_user["id"]}, headers=alice)

        notification_id = self.client.get("/notifications/", headers=bob).json()["notifications"][0]["id"]
        response = self.client.put(f"/notifications/{notification_id}/read", headers=bob)
        self.assertTrue(response.json()["is_read"])
        self.assertEqual(self.client.put(f"/notifications/{notification_id}/read", headers=alice).status_code, 404)

    def test_page_size_is_bounded(self):
        self.register("alice")
        alice = self.login("alice")

        self.assertEqual(self.client.get("/posts/feed", params={"limit": 0}).status_code, 422)
        self.assertEqual(self.client.get("/posts/feed", params={"limit": 101}).status_code, 422)
        self.assertEqual(self.client.get("/notifications/", params={"limit": 0}, headers=alice).status_code, 422)
        self.assertEqual(self.client.get("/users/", params={"limit": -1}).status_code, 422)

        empty = self.client.get("/posts/feed", params={"limit": 1})
        self.assertEqual(empty.status_code, 200)
        self.assertEqual(empty.json()["documents"], [])
        self.assertIsNone(empty.json()["next_cursor"])

    def test_refollow_notifies_again(self):
        self.register("alice")
        bob_user = self.register("bob")
        alice = self.login("alice")
        bob = self.login("bob")

        self.client.post("/follows/", json={"following_id": bob_user["id"]}, headers=alice)
        self.client.put("/notifications/read-all", headers=bob)
        self.client.delete(f"/follows/{bob_user['id']}", headers=alice)
        self.client.post("/follows/", json={"following_id": bob_user["id"]}, headers=alice)

        self.assertEqual(self.client.get("/notifications/", headers=bob).json()["unread_count"], 1)

    def test_initials_avatar(self):
        response = self.client.get("/avatars/initials", params={"name": "Ada Lovelace"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("image/svg+xml"))
        self.assertIn(">AL<", response.text)

    def test_realtime_websocket_streams_post_events(self):
        self.register("alice")
        alice = self.login("alice")

        channel = documents_channel(POSTS_COLLECTION_ID)
        with self.client.websocket_connect(f"/realtime/?channels={channel}") as websocket:
            created = self.client.post("/posts/", data={"caption": "Live from the venue"}, headers=alice)
            event = websocket.receive_json()

        self.assertEqual(event["payload"]["id"], created.json()["id"])
        self.assertTrue(event["events"][0].endswith(".create"))
        self.assertIn(channel, event["channels"])


if __name__ == "__main__":
    unittest.main()
