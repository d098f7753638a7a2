"""
Tests for the admin console views.

Views run against the fake gallery API; admin and viewer sessions come from
the fake identity provider.
"""
import io

import pytest

MIB = 1024 * 1024


@pytest.fixture()
def seeded(api):
    api.templates["t1"] = {
        "id": "t1",
        "name": "Portrait",
        "fields": [{"name": "camera", "label": "Camera", "type": "string"}],
    }
    api.categories["c1"] = {"id": "c1", "name": "People", "templateId": "t1"}
    api.categories["c2"] = {"id": "c2", "name": "Orphans", "templateId": "gone"}
    return api


def drop(client, *files):
    return client.post(
        "/admin/upload/files",
        data={"files": [(io.BytesIO(data), name, mime) for name, mime, data in files]},
        content_type="multipart/form-data",
    )


class TestDashboard:
    def test_counts(self, client, auth, seeded):
        auth.login()
        response = client.get("/admin/")
        assert response.status_code == 200
        assert b'data-count="categories">2<' in response.data
        assert b'data-count="templates">1<' in response.data

    def test_counts_degrade_when_api_is_down(self, client, auth, api):
        auth.login()
        api.fail_all = True
        response = client.get("/admin/")
        assert response.status_code == 200
        assert 'data-count="categories">—<'.encode() in response.data

    def test_tabs_rendered(self, client, auth):
        auth.login()
        response = client.get("/admin/")
        for label in (b"Dashboard", b"Upload", b"Categories", b"Templates"):
            assert label in response.data
        assert b"Sign out" in response.data


class TestCategoryViews:
    def test_list_shows_template_names(self, client, auth, seeded):
        auth.login()
        response = client.get("/admin/categories")
        assert b"People" in response.data
        assert b"Template: Portrait" in response.data
        assert b"Template: Unknown Template" in response.data
        assert b"Add Category" in response.data

    def test_viewer_sees_no_edit_controls(self, client, auth, seeded):
        auth.login_viewer()
        response = client.get("/admin/categories")
        assert b"People" in response.data
        assert b"Add Category" not in response.data

    def test_admin_creates_category(self, client, auth, api):
        auth.login()
        response = client.post(
            "/admin/categories/create",
            data={"name": "Landscapes", "description": "", "template_id": ""},
            follow_redirects=True,
        )
        assert response.status_code == 200
        assert b"Category &#34;Landscapes&#34; created." in response.data
        assert [c["name"] for c in api.categories.values()] == ["Landscapes"]

    def test_invalid_name_shows_inline_error(self, client, auth, api):
        auth.login()
        response = client.post(
            "/admin/categories/create",
            data={"name": "L", "template_id": ""},
        )
        assert response.status_code == 200
        assert b"Category name must be at least 2 characters" in response.data
        assert api.count("POST") == 0

    def test_viewer_create_refused_without_request(self, client, auth, api):
        auth.login_viewer()
        response = client.post(
            "/admin/categories/create",
            data={"name": "Landscapes", "template_id": ""},
        )
        assert response.status_code == 200
        assert b"Unauthorized: Admin access required" in response.data
        assert api.count("POST") == 0

    def test_edit_prefills_and_updates(self, client, auth, seeded):
        auth.login()
        response = client.get("/admin/categories/c1/edit")
        assert b'value="People"' in response.data

        client.post(
            "/admin/categories/c1/edit",
            data={"name": "Faces", "template_id": "t1"},
        )
        assert seeded.categories["c1"]["name"] == "Faces"
        assert seeded.categories["c1"]["templateId"] == "t1"

    def test_edit_missing_category_redirects(self, client, auth, api):
        auth.login()
        response = client.get("/admin/categories/nope/edit", follow_redirects=True)
        assert b"Failed to load category" in response.data

    def test_delete(self, client, auth, seeded):
        auth.login()
        response = client.post("/admin/categories/c2/delete", follow_redirects=True)
        assert b"Category deleted." in response.data
        assert "c2" not in seeded.categories

    def test_viewer_delete_refused(self, client, auth, seeded):
        auth.login_viewer()
        response = client.post("/admin/categories/c2/delete", follow_redirects=True)
        assert b"Unauthorized: Admin access required" in response.data
        assert "c2" in seeded.categories
        assert seeded.count("DELETE") == 0

    def test_api_error_text_not_shown(self, client, auth, seeded):
        auth.login()
        seeded.fail_all = True
        response = client.post("/admin/categories/c1/delete", follow_redirects=True)
        assert b"Failed to delete category" in response.data
        assert b"API unreachable" not in response.data

    def test_media_browser(self, client, auth, seeded):
        seeded.media.append(
            {"categoryId": "c1", "title": "Grandma", "filename": "g.png"}
        )
        auth.login()
        response = client.get("/admin/categories/c1/media")
        assert response.status_code == 200
        assert b"Grandma" in response.data


class TestTemplateViews:
    def test_create_form_has_one_row(self, client, auth):
        auth.login()
        response = client.get("/admin/templates/create")
        assert response.data.count(b"template-field-row") == 1

    def test_add_field_row(self, client, auth, api):
        auth.login()
        response = client.post(
            "/admin/templates/create",
            data={
                "name": "Portrait",
                "fields-0-name": "camera",
                "fields-0-label": "Camera",
                "fields-0-type": "string",
                "add_field": "1",
            },
        )
        assert response.data.count(b"template-field-row") == 2
        assert b'value="camera"' in response.data
        assert api.count("POST") == 0

    def test_remove_field_row(self, client, auth, api):
        auth.login()
        response = client.post(
            "/admin/templates/create",
            data={
                "name": "Portrait",
                "fields-0-name": "camera",
                "fields-0-label": "Camera",
                "fields-0-type": "string",
                "fields-1-name": "lens",
                "fields-1-label": "Lens",
                "fields-1-type": "string",
                "remove_field": "0",
            },
        )
        assert response.data.count(b"template-field-row") == 1
        assert b'value="lens"' in response.data
        assert b'value="camera"' not in response.data

    def test_admin_creates_template(self, client, auth, api):
        auth.login()
        response = client.post(
            "/admin/templates/create",
            data={
                "name": "Portrait",
                "fields-0-name": "camera",
                "fields-0-label": "Camera",
                "fields-0-type": "string",
                "fields-0-required": "y",
            },
            follow_redirects=True,
        )
        assert b"Template &#34;Portrait&#34; created." in response.data
        (created,) = api.templates.values()
        assert created["fields"] == [
            {"name": "camera", "label": "Camera", "type": "string", "required": True}
        ]

    def test_template_without_fields_rejected(self, client, auth, api):
        auth.login()
        response = client.post("/admin/templates/create", data={"name": "Portrait"})
        assert b"At least one field is required" in response.data
        assert api.count("POST") == 0

    def test_unknown_field_type_from_api_renders(self, client, auth, seeded):
        seeded.templates["t1"]["fields"].append(
            {"name": "notes", "label": "Notes", "type": "text"}
        )
        auth.login()
        response = client.get("/admin/templates")
        assert response.status_code == 200
        assert b"Notes (string)" in response.data
        assert client.get("/admin/categories").status_code == 200

    def test_list_and_delete(self, client, auth, seeded):
        auth.login()
        response = client.get("/admin/templates")
        assert b"Portrait" in response.data
        assert b"Camera (string)" in response.data

        client.post("/admin/templates/t1/delete")
        assert "t1" not in seeded.templates

    def test_edit(self, client, auth, seeded):
        auth.login()
        response = client.get("/admin/templates/t1/edit")
        assert b'value="camera"' in response.data

        client.post(
            "/admin/templates/t1/edit",
            data={
                "name": "Portraits",
                "fields-0-name": "camera",
                "fields-0-label": "Camera body",
                "fields-0-type": "string",
            },
        )
        assert seeded.templates["t1"]["name"] == "Portraits"
        assert seeded.templates["t1"]["fields"][0]["label"] == "Camera body"


class TestUploadViews:
    def test_upload_page_lists_categories(self, client, auth, seeded):
        auth.login()
        response = client.get("/admin/upload")
        assert response.status_code == 200
        assert b"People" in response.data

    def test_drop_admits_and_rejects(self, client, auth):
        auth.login()
        response = drop(
            client,
            ("ok.png", "image/png", b"\x89PNG"),
            ("huge.jpg", "image/jpeg", b"\0" * (11 * MIB)),
        )
        assert response.status_code == 302

        page = client.get("/admin/upload")
        assert page.data.count(b"huge.jpg") == 1
        assert b"huge.jpg: File is larger than 10MB" in page.data

        status = client.get("/admin/upload/status").get_json()
        assert [f["filename"] for f in status["files"]] == ["ok.png"]

    def test_preview_served_then_released_on_remove(self, client, auth):
        auth.login()
        drop(client, ("ok.png", "image/png", b"\x89PNG"))
        (entry,) = client.get("/admin/upload/status").get_json()["files"]

        preview = client.get(f"/admin/upload/previews/{entry['id']}")
        assert preview.status_code == 200
        assert preview.data == b"\x89PNG"
        assert preview.mimetype == "image/png"
        preview.close()

        client.post(f"/admin/upload/files/{entry['id']}/remove")
        assert client.get("/admin/upload/status").get_json()["files"] == []
        assert client.get(f"/admin/upload/previews/{entry['id']}").status_code == 404

    def test_clear(self, client, auth):
        auth.login()
        drop(client, ("a.png", "image/png", b"a"), ("b.png", "image/png", b"b"))
        client.post("/admin/upload/clear")
        assert client.get("/admin/upload/status").get_json()["files"] == []

    def test_clear_refused_while_running(self, client, auth, app):
        auth.login()
        drop(client, ("a.png", "image/png", b"a"))
        (batch,) = app.extensions["gallery_admin.uploads"]._batches.values()
        batch.running = True
        response = client.post("/admin/upload/clear", follow_redirects=True)
        assert b"Uploads are still running." in response.data
        assert len(batch) == 1
        batch.running = False

    def test_submit_partial_failure(self, client, auth, seeded):
        seeded.fail_uploads.add("two.png")
        auth.login()
        drop(
            client,
            ("one.png", "image/png", b"1"),
            ("two.png", "image/png", b"2"),
            ("three.png", "image/png", b"3"),
        )
        response = client.post(
            "/admin/upload",
            data={"category_id": "c1", "title": "Family", "description": ""},
            headers={"Accept": "application/json"},
        )
        body = response.get_json()
        assert body["success"] is False
        assert sorted(body["succeeded"]) == ["one.png", "three.png"]
        assert body["failed"] == ["two.png"]

        (left,) = client.get("/admin/upload/status").get_json()["files"]
        assert left["filename"] == "two.png"
        assert left["status"] == "failed"
        assert left["error"] == "Upload failed"
        assert {m["categoryId"] for m in seeded.media} == {"c1"}

    def test_submit_all_succeeded(self, client, auth, seeded):
        auth.login()
        drop(client, ("one.png", "image/png", b"1"))
        response = client.post(
            "/admin/upload",
            data={"category_id": "c1", "title": "Family"},
            follow_redirects=True,
        )
        assert b"All files uploaded successfully" in response.data
        assert len(seeded.media) == 1

    def test_finished_batch_is_released(self, client, auth, seeded, app):
        registry = app.extensions["gallery_admin.uploads"]
        auth.login()
        drop(client, ("one.png", "image/png", b"1"))
        assert len(registry) == 1
        client.post("/admin/upload", data={"category_id": "c1", "title": "Family"})
        assert len(registry) == 0
        assert client.get("/admin/upload/status").get_json()["id"] is None

    def test_page_view_creates_no_batch(self, client, auth, app):
        auth.login()
        assert client.get("/admin/upload").status_code == 200
        assert len(app.extensions["gallery_admin.uploads"]) == 0

    def test_second_submit_refused_while_running(self, client, auth, seeded, app):
        auth.login()
        drop(client, ("one.png", "image/png", b"1"))
        (batch,) = app.extensions["gallery_admin.uploads"]._batches.values()
        batch.running = True
        response = client.post(
            "/admin/upload",
            data={"category_id": "c1", "title": "Family"},
            headers={"Accept": "application/json"},
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "Uploads are still running"
        assert seeded.media == []
        batch.running = False


    def test_submit_empty_batch(self, client, auth, seeded):
        auth.login()
        response = client.post(
            "/admin/upload",
            data={"category_id": "c1", "title": "Family"},
            headers={"Accept": "application/json"},
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == (
            "Please select at least one file to upload"
        )
        assert seeded.count("POST") == 0

    def test_submit_requires_metadata(self, client, auth, seeded):
        auth.login()
        drop(client, ("one.png", "image/png", b"1"))
        response = client.post(
            "/admin/upload",
            data={"category_id": "", "title": ""},
            follow_redirects=True,
        )
        assert b"Category is required" in response.data
        assert seeded.media == []

    def test_sign_out_discards_batch(self, client, auth, app):
        auth.login()
        drop(client, ("one.png", "image/png", b"1"))
        registry = app.extensions["gallery_admin.uploads"]
        assert len(registry) == 1
        auth.logout()
        assert len(registry) == 0

    def test_status_without_batch(self, client, auth):
        auth.login()
        assert client.get("/admin/upload/status").get_json() == {
            "id": None,
            "running": False,
            "files": [],
        }
