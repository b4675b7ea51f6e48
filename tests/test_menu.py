import hashlib
import json
from io import StringIO
from unittest import mock

import pytest
import requests
from django.core.management import CommandError, call_command

from menu.services import MENU_COLLECTION, CloudinaryService, load_menu_file, upload_menu


@pytest.fixture
def cloudinary(settings):
    settings.CLOUDINARY_CLOUD_NAME = "farmhouse"
    settings.CLOUDINARY_API_KEY = "api-key"
    settings.CLOUDINARY_API_SECRET = "secret"
    settings.CLOUDINARY_UPLOAD_PRESET = "menu"
    settings.CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


def api_response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    return response


def post_json(client, url, data):
    return client.post(url, data=json.dumps(data), content_type="application/json")


class TestCloudinaryService:
    def test_upload_uses_preset(self, cloudinary):
        with mock.patch("menu.services.requests.post",
                        return_value=api_response({"secure_url": "https://img/1.jpg"})) as post:
            url = CloudinaryService().upload("data:image/png;base64,AAAA")

        assert url == "https://img/1.jpg"
        assert post.call_args.args[0] == "https://api.cloudinary.com/v1_1/farmhouse/image/upload"
        assert post.call_args.kwargs["data"]["upload_preset"] == "menu"

    def test_delete_signs_request(self, cloudinary):
        with mock.patch("menu.services.time.time", return_value=1700000000), \
                mock.patch("menu.services.requests.post", return_value=api_response({"result": "ok"})) as post:
            assert CloudinaryService().delete("pizzas/margherita") is True

        payload = post.call_args.kwargs["data"]
        expected = hashlib.sha1(b"public_id=pizzas/margherita&timestamp=1700000000secret").hexdigest()
        assert payload["signature"] == expected
        assert payload["api_key"] == "api-key"

    def test_delete_reports_failure(self, cloudinary):
        with mock.patch("menu.services.requests.post", return_value=api_response({"result": "not found"})):
            assert CloudinaryService().delete("missing") is False

    def test_missing_configuration(self, settings):
        from django.core.exceptions import ImproperlyConfigured

        settings.CLOUDINARY_CLOUD_NAME = ""
        with pytest.raises(ImproperlyConfigured):
            CloudinaryService()


class TestImageViews:
    def test_upload(self, client, cloudinary):
        with mock.patch("menu.services.requests.post",
                        return_value=api_response({"secure_url": "https://img/2.jpg"})):
            response = post_json(client, "/api/upload", {"data": "data:image/png;base64,AAAA"})
        assert response.status_code == 200
        assert response.json() == {"secure_url": "https://img/2.jpg"}

    def test_upload_without_data(self, client, cloudinary):
        assert post_json(client, "/api/upload", {}).status_code == 400

    def test_upload_failure_is_generic(self, client, cloudinary):
        with mock.patch("menu.services.requests.post", side_effect=requests.exceptions.Timeout("slow")):
            response = post_json(client, "/api/upload", {"data": "x"})
        assert response.status_code == 500
        assert response.json() == {"error": "Something went wrong"}

    def test_delete(self, client, cloudinary):
        with mock.patch("menu.services.requests.post", return_value=api_response({"result": "ok"})):
            response = post_json(client, "/api/delete-image", {"publicId": "pizzas/1"})
        assert response.json() == {"success": True, "message": "Image deleted successfully"}

    def test_delete_not_found(self, client, cloudinary):
        with mock.patch("menu.services.requests.post", return_value=api_response({"result": "not found"})):
            response = post_json(client, "/api/delete-image", {"publicId": "pizzas/1"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_image_endpoints_are_admin_only(self, client, cloudinary, settings):
        settings.ADMIN_AUTH_REQUIRED = True
        assert post_json(client, "/api/upload", {"data": "x"}).status_code == 401
        assert post_json(client, "/api/delete-image", {"publicId": "p"}).status_code == 401


MENU = [
    {"category": "Pizzas", "items": [{"name": "Margherita", "price": 250}]},
    {"category": "Drinks", "items": [{"name": "Coke", "price": 40}]},
]


class TestMenuUpload:
    def test_upload_menu_writes_each_category(self, store):
        assert upload_menu(MENU, store=store, progress=False) == 2
        assert store.get(MENU_COLLECTION, "Pizzas") == MENU[0]

    def test_load_menu_file_rejects_bad_shape(self, tmp_path):
        path = tmp_path / "menu.json"
        path.write_text(json.dumps({"category": "Pizzas"}))
        with pytest.raises(ValueError):
            load_menu_file(path)

    def test_command(self, store, tmp_path):
        path = tmp_path / "menu.json"
        path.write_text(json.dumps(MENU))
        out = StringIO()

        call_command("upload_menu", str(path), "--no-progress", stdout=out)

        assert "All menu data uploaded! (2 categories)" in out.getvalue()
        assert {doc_id for doc_id, _ in store.query(MENU_COLLECTION)} == {"Pizzas", "Drinks"}

    def test_command_with_missing_file(self, tmp_path):
        with pytest.raises(CommandError, match="was not found"):
            call_command("upload_menu", str(tmp_path / "nope.json"))

    def test_command_with_invalid_json(self, tmp_path):
        path = tmp_path / "menu.json"
        path.write_text("{oops")
        with pytest.raises(CommandError, match="Could not decode JSON"):
            call_command("upload_menu", str(path))


@pytest.mark.parametrize("url", ["/api/upload", "/api/delete-image"])
def test_image_endpoints_reject_non_object_body(client, cloudinary, url):
    assert post_json(client, url, ["x"]).status_code == 400
