"""Tests for the admin route guard and the auth cookie lifecycle."""
import pytest

from gallery_admin.route_guard import is_admin_path


class TestIsAdminPath:
    @pytest.mark.parametrize(
        "path", ["/admin", "/admin/", "/admin/categories", "/admin/upload/status"]
    )
    def test_admin_paths(self, path):
        assert is_admin_path(path, "/admin")

    @pytest.mark.parametrize("path", ["/", "/auth/login", "/administrator", "/x/admin"])
    def test_other_paths(self, path):
        assert not is_admin_path(path, "/admin")

    def test_prefix_trailing_slash_ignored(self):
        assert is_admin_path("/admin/templates", "/admin/")


class TestGuard:
    """Cookie presence gates every admin path."""

    def test_anonymous_admin_request_redirects_to_login(self, client):
        response = client.get("/admin/categories", follow_redirects=False)
        assert response.status_code == 302
        assert "/auth/login" in response.location
        assert "next=" in response.location

    def test_public_pages_pass_through(self, client):
        assert client.get("/").status_code == 200
        assert client.get("/auth/login").status_code == 200

    def test_guard_does_not_call_the_api(self, client, api):
        client.get("/admin/categories")
        assert api.count() == 0

    def test_cookie_presence_alone_passes_the_guard(self, client):
        """The guard only checks presence; the login check happens afterwards."""
        client.set_cookie("authToken", "stale-key")
        response = client.get("/admin/", follow_redirects=False)
        # Flask-Login still refuses: there is no session behind the cookie
        assert response.status_code == 302
        assert "/auth/login" in response.location

    def test_signed_in_request_passes(self, client, auth):
        auth.login()
        assert client.get("/admin/").status_code == 200

    def test_sign_out_then_admin_path_redirects(self, client, auth):
        auth.login()
        auth.logout()
        response = client.get("/admin/templates", follow_redirects=False)
        assert response.status_code == 302
        assert "/auth/login" in response.location

    def test_lost_cookie_redirects_even_with_session(self, client, auth):
        """Deleting the cookie alone is enough to bounce admin requests."""
        auth.login()
        client.delete_cookie("authToken")
        response = client.get("/admin/", follow_redirects=False)
        assert response.status_code == 302
        assert "/auth/login" in response.location

        # The login page ends the orphaned session instead of bouncing back
        response = client.get(response.location, follow_redirects=False)
        assert response.status_code == 200
        assert b"Your session has ended. Please sign in again." in response.data

        response = client.get("/admin/", follow_redirects=True)
        assert response.status_code == 200
        assert len(response.history) == 1
        assert b"Sign in" in response.data

    def test_sign_in_after_lost_cookie_restores_access(self, client, auth, provider):
        auth.login()
        client.delete_cookie("authToken")
        client.get("/auth/login")
        assert len(provider.revoked) == 1

        auth.login()
        assert client.get_cookie("authToken") is not None
        assert client.get("/admin/").status_code == 200
