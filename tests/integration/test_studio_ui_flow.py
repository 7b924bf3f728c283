"""End-to-end browser flows through the Flask test client."""

import io
import threading

import pytest

from ui.panels import EDITOR_VALIDATION_MESSAGE, GENERATOR_VALIDATION_MESSAGE
from utils.vision import LocalImageGenerator

pytestmark = pytest.mark.integration


def _upload(client, data, *, prompt=None, content_type="image/png"):
    form = {"image": (io.BytesIO(data), "photo.png", content_type)}
    if prompt is not None:
        form["prompt"] = prompt
    return client.post("/editor/upload", data=form, content_type="multipart/form-data")


def test_first_visit_shows_editor_with_default_prompt(client):
    page = client.get("/").get_data(as_text=True)

    assert "AI Image Studio" in page
    assert "Image Editor" in page and "Image Generator" in page
    assert "Change the background of this image" in page
    assert "Edited image will appear here" in page
    assert "Powered by Google Gemini" in page
    # no image yet, so the submit control is disabled
    assert "disabled" in page


def test_editor_upload_then_submit_shows_result(client, fake_service, png_bytes):
    response = _upload(client, png_bytes, prompt="add a hat")
    assert response.status_code == 302

    page = client.get("/?tab=editor").get_data(as_text=True)
    assert "data:image/png;base64," in page
    assert "add a hat" in page

    response = client.post("/editor/submit", data={"prompt": "add a hat"}, follow_redirects=True)

    assert response.status_code == 200
    assert fake_service.result in response.get_data(as_text=True)
    assert fake_service.edit_calls[0][1] == "add a hat"


def test_editor_submit_without_upload_shows_validation_error(client, fake_service):
    response = client.post("/editor/submit", data={"prompt": "anything"}, follow_redirects=True)

    assert EDITOR_VALIDATION_MESSAGE in response.get_data(as_text=True)
    assert fake_service.call_count == 0


def test_generator_flow_and_error_display(make_app, failing_service):
    with make_app(failing_service).test_client() as client:
        page = client.get("/?tab=generator").get_data(as_text=True)
        assert "futuristic city skyline" in page
        assert "Generated image will appear here" in page

        empty = client.post("/generator/submit", data={"prompt": ""}, follow_redirects=True)
        assert GENERATOR_VALIDATION_MESSAGE in empty.get_data(as_text=True)
        assert failing_service.call_count == 0

        failed = client.post("/generator/submit", data={"prompt": "a fox"}, follow_redirects=True)
        body = failed.get_data(as_text=True)
        assert "quota exceeded" in body
        assert "Generate New Image" in body


def test_switching_tabs_discards_editor_state(client, png_bytes):
    _upload(client, png_bytes, prompt="custom prompt")
    client.get("/?tab=generator")

    page = client.get("/?tab=editor").get_data(as_text=True)

    assert "custom prompt" not in page
    assert "Click to upload" in page


def test_sessions_are_isolated(make_app, fake_service, png_bytes):
    app = make_app(fake_service)
    with app.test_client() as first, app.test_client() as second:
        _upload(first, png_bytes)

        assert "data:image/png;base64," in first.get("/").get_data(as_text=True)
        assert "Click to upload" in second.get("/").get_data(as_text=True)


def test_unknown_tab_is_not_found(client):
    assert client.get("/?tab=gallery").status_code == 404


def test_mock_generator_round_trip(make_app, png_bytes):
    with make_app(LocalImageGenerator(default_size=(16, 16))).test_client() as client:
        _upload(client, png_bytes)
        edited = client.post("/editor/submit", data={"prompt": "make it blue"}, follow_redirects=True)
        generated = client.post("/generator/submit", data={"prompt": "sunset"}, follow_redirects=True)

    assert edited.get_data(as_text=True).count("data:image/png;base64,") >= 2
    assert "data:image/png;base64," in generated.get_data(as_text=True)


def test_submit_while_busy_returns_conflict(make_app, blocking_service, png_bytes):
    app = make_app(blocking_service)
    cookie_name = app.config["SESSION_COOKIE_NAME"]

    first = app.test_client()
    second = app.test_client()
    _upload(first, png_bytes)
    second.set_cookie(cookie_name, first.get_cookie(cookie_name).value)

    responses = {}
    worker = threading.Thread(
        target=lambda: responses.update(first=first.post("/editor/submit", data={"prompt": "one"}))
    )
    worker.start()
    try:
        assert blocking_service.started.wait(timeout=5)

        busy = second.post("/editor/submit", data={"prompt": "two"})

        assert busy.status_code == 409
        body = busy.get_data(as_text=True)
        assert "A request is already in progress." in body
        assert "Generating..." in body
    finally:
        blocking_service.release.set()
        worker.join(timeout=5)

    assert responses["first"].status_code == 302
    assert [prompt for _, prompt in blocking_service.edit_calls] == ["one"]


def test_oversized_browser_upload_renders_editor_notice(make_app, fake_service, test_config):
    test_config.set("ui.max_upload_mb", 1)
    oversized = b"\0" * (1024 * 1024 + 10)

    with make_app(fake_service).test_client() as client:
        client.get("/?tab=generator")
        response = _upload(client, oversized)

    assert response.status_code == 413
    assert response.mimetype == "text/html"
    body = response.get_data(as_text=True)
    assert "The uploaded file is too large (max 1MB)." in body
    assert "Click to upload" in body
    assert fake_service.call_count == 0
