"""
tests/test_users_api.py -- Integration tests for /api/v1/users routes.

Coverage:
  - Profile read with content counts; profile update; password change rules
  - Admin-only listing with search
  - Role changes and account deletion: admin only, never on one's own account
  - Account deletion cascades to posts and comments
"""

from __future__ import annotations


class TestProfile:
    def test_get_profile_with_counts(self, api) -> None:
        alice_id, alice = api.make_user("alice@example.com")
        post = api.create_post(alice)
        api.create_comment(alice, post["id"])
        resp = api.client.get("/api/v1/users/me", headers=alice)
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == alice_id
        assert body["counts"] == {"posts": 1, "comments": 1}

    def test_profile_requires_auth(self, api) -> None:
        assert api.client.get("/api/v1/users/me").status_code == 401

    def test_update_names(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        resp = api.client.patch("/api/v1/users/me", json={"first_name": "Alicia", "country": "Peru"}, headers=alice)
        assert resp.status_code == 200
        assert resp.json()["first_name"] == "Alicia"
        assert resp.json()["country"] == "Peru"

    def test_profile_update_cannot_change_role(self, api) -> None:
        alice_id, alice = api.make_user("alice@example.com")
        resp = api.client.patch("/api/v1/users/me", json={"role": "admin"}, headers=alice)
        assert resp.status_code == 200
        assert api.user_store.find_identity(alice_id).role.value == "user"

    def test_new_password_requires_current(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        resp = api.client.patch("/api/v1/users/me", json={"new_password": "newpassword1"}, headers=alice)
        assert resp.status_code == 400

    def test_wrong_current_password(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        resp = api.client.patch(
            "/api/v1/users/me",
            json={"current_password": "wrongpass1", "new_password": "newpassword1"},
            headers=alice,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Current password is incorrect."

    def test_password_change(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        resp = api.client.patch(
            "/api/v1/users/me",
            json={"current_password": "password123", "new_password": "newpassword1"},
            headers=alice,
        )
        assert resp.status_code == 200
        old = api.client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "password123"})
        new = api.client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "newpassword1"})
        assert old.status_code == 401
        assert new.status_code == 200


class TestAdministration:
    def test_list_users_admin_only(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        _, admin = api.make_user("root@example.com", role="admin")
        assert api.client.get("/api/v1/users", headers=alice).status_code == 403
        resp = api.client.get("/api/v1/users", headers=admin)
        assert resp.status_code == 200
        assert resp.json()["pagination"]["total"] == 2

    def test_list_users_includes_content_counts(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        _, admin = api.make_user("root@example.com", role="admin")
        post = api.create_post(alice)
        api.create_comment(alice, post["id"])
        api.create_comment(admin, post["id"])
        body = api.client.get("/api/v1/users", headers=admin).json()
        counts = {u["email"]: u["counts"] for u in body["data"]}
        assert counts == {
            "alice@example.com": {"posts": 1, "comments": 1},
            "root@example.com": {"posts": 0, "comments": 1},
        }

    def test_list_users_search(self, api) -> None:
        api.make_user("alice@example.com", first_name="Alice")
        _, admin = api.make_user("root@example.com", role="admin", first_name="Root")
        body = api.client.get("/api/v1/users", params={"search": "alic"}, headers=admin).json()
        assert [u["email"] for u in body["data"]] == ["alice@example.com"]

    def test_change_role(self, api) -> None:
        alice_id, alice = api.make_user("alice@example.com")
        _, admin = api.make_user("root@example.com", role="admin")
        resp = api.client.patch(f"/api/v1/users/{alice_id}/role", json={"role": "admin"}, headers=admin)
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"
        # The promoted user's existing token now carries admin rights.
        assert api.client.get("/api/v1/users", headers=alice).status_code == 200

    def test_invalid_role_rejected(self, api) -> None:
        alice_id, _ = api.make_user("alice@example.com")
        _, admin = api.make_user("root@example.com", role="admin")
        resp = api.client.patch(f"/api/v1/users/{alice_id}/role", json={"role": "owner"}, headers=admin)
        assert resp.status_code == 400

    def test_admin_cannot_change_own_role(self, api) -> None:
        admin_id, admin = api.make_user("root@example.com", role="admin")
        resp = api.client.patch(f"/api/v1/users/{admin_id}/role", json={"role": "user"}, headers=admin)
        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == "You cannot change your own role."
        assert api.user_store.find_identity(admin_id).role.value == "admin"

    def test_admin_cannot_delete_self(self, api) -> None:
        admin_id, admin = api.make_user("root@example.com", role="admin")
        resp = api.client.delete(f"/api/v1/users/{admin_id}", headers=admin)
        assert resp.status_code == 403
        assert api.user_store.get_by_id(admin_id) is not None

    def test_user_cannot_change_roles(self, api) -> None:
        alice_id, alice = api.make_user("alice@example.com")
        bob_id, _ = api.make_user("bob@example.com")
        resp = api.client.patch(f"/api/v1/users/{bob_id}/role", json={"role": "admin"}, headers=alice)
        assert resp.status_code == 403
        assert api.client.patch(f"/api/v1/users/{alice_id}/role", json={"role": "admin"}, headers=alice).status_code == 403

    def test_missing_user_is_404(self, api) -> None:
        _, admin = api.make_user("root@example.com", role="admin")
        assert api.client.delete("/api/v1/users/missing", headers=admin).status_code == 404

    def test_missing_user_is_404_for_non_admin_too(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        deleted = api.client.delete("/api/v1/users/missing", headers=alice)
        patched = api.client.patch("/api/v1/users/missing/role", json={"role": "admin"}, headers=alice)
        for resp in (deleted, patched):
            assert resp.status_code == 404
            assert resp.json()["error"]["code"] == "not_found"

    def test_non_admin_cannot_delete_existing_user(self, api) -> None:
        _, alice = api.make_user("alice@example.com")
        bob_id, _ = api.make_user("bob@example.com")
        resp = api.client.delete(f"/api/v1/users/{bob_id}", headers=alice)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"
        assert api.user_store.get_by_id(bob_id) is not None

    def test_missing_user_still_needs_auth(self, api) -> None:
        assert api.client.delete("/api/v1/users/missing").status_code == 401

    def test_delete_user_cascades(self, api) -> None:
        alice_id, alice = api.make_user("alice@example.com")
        _, bob = api.make_user("bob@example.com")
        _, admin = api.make_user("root@example.com", role="admin")
        alice_post = api.create_post(alice)
        bob_post = api.create_post(bob)
        bob_on_alice = api.create_comment(bob, alice_post["id"])
        alice_on_bob = api.create_comment(alice, bob_post["id"])

        assert api.client.delete(f"/api/v1/users/{alice_id}", headers=admin).status_code == 204

        assert api.client.get(f"/api/v1/posts/{alice_post['id']}").status_code == 404
        assert api.blog_store.get_comment(bob_on_alice["id"]) is None
        assert api.blog_store.get_comment(alice_on_bob["id"]) is None
        assert api.client.get(f"/api/v1/posts/{bob_post['id']}").status_code == 200
        # The deleted account's token no longer authenticates.
        assert api.client.get("/api/v1/users/me", headers=alice).status_code == 401
