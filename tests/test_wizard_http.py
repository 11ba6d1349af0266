import runpy
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from form_wizard.api.main import create_app
from form_wizard.settings import Settings
from form_wizard.wizard import Wizard, load_wizard_file


@pytest.fixture
def wizard(contact_wizard_path):
    return load_wizard_file(contact_wizard_path)


@pytest.fixture
def client(wizard):
    return TestClient(create_app(Settings(), wizards=[wizard]), follow_redirects=False)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_get_step_renders_json_view_model(client):
    response = client.get("/contact/name")
    assert response.status_code == 200
    data = response.json()
    assert data["template"] == "name"
    assert data["action"] == "/contact/name"
    assert data["route"] == "name"
    assert data["fields"][0]["key"] == "name"
    assert data["backLink"] is None


def test_back_link_points_at_previous_step(client):
    data = client.get("/contact/contact-method").json()
    assert data["backLink"] == "name"

    data = client.get("/contact/contact-method/edit").json()
    assert data["backLink"] == "name/edit"


def test_full_journey_with_fork(client, wizard):
    response = client.post("/contact/name", data={"name": "Clark Kent"})
    assert response.status_code == 302
    assert response.headers["location"] == "/contact/contact-method"

    response = client.post("/contact/contact-method", data={"contact-method": "phone"})
    assert response.headers["location"] == "/contact/phone"

    response = client.post("/contact/phone", data={"phone": "+44 7700 900123"})
    assert response.headers["location"] == "/contact/confirm"

    data = client.get("/contact/confirm").json()
    assert data["values"]["name"] == "Clark Kent"
    assert data["values"]["phone"] == "07700900123"

    session_id = client.cookies.get("form_wizard_sid")
    history = wizard.session_for(session_id).get("steps")
    assert history == ["/name", "/contact-method", "/phone", "/confirm"]


def test_validation_errors_round_trip(client):
    response = client.post("/contact/name", data={"name": ""})
    assert response.status_code == 302
    assert response.headers["location"] == "/contact/name"

    data = client.get("/contact/name").json()
    assert data["errors"]["name"]["type"] == "required"
    assert data["errorlist"] == [{"key": "name", "type": "required"}]
    assert data["errorLength"] == {"single": True}


def test_edit_jumps_back_to_confirm_for_visited_steps(client):
    client.post("/contact/name", data={"name": "Clark"})
    client.post("/contact/contact-method", data={"contact-method": "email"})
    client.post("/contact/email", data={"email": "clark@smallville.com"})

    response = client.post("/contact/name/edit", data={"name": "Clark Kent"})
    assert response.headers["location"] == "/contact/confirm"


def test_edit_onto_a_new_branch_visits_it_first(client):
    client.post("/contact/name", data={"name": "Clark"})
    client.post("/contact/contact-method", data={"contact-method": "email"})
    client.post("/contact/email", data={"email": "clark@smallville.com"})

    response = client.post("/contact/contact-method/edit", data={"contact-method": "phone"})
    assert response.headers["location"] == "/contact/phone"


def test_put_without_handler_is_405(client):
    response = client.put("/contact/name", data={"name": "x"})
    assert response.status_code == 405
    body = response.json()
    assert body["ok"] is False
    assert body["error"] == "method_not_allowed"
    assert body["requestId"].startswith("err_")


def test_missing_template_is_500():
    wizard = Wizard({"/broken": {"template": ""}}, name="broken")
    client = TestClient(create_app(Settings(), wizards=[wizard]), follow_redirects=False)
    response = client.get("/broken")
    assert response.status_code == 500
    assert response.json()["error"] == "configuration_error"


def test_json_bodies_are_accepted(client):
    response = client.post("/contact/name", json={"name": "Lois"})
    assert response.headers["location"] == "/contact/contact-method"


def test_app_mounts_wizard_from_settings(contact_wizard_path):
    settings = Settings(steps_path=str(contact_wizard_path), base_url="/intake")
    client = TestClient(create_app(settings), follow_redirects=False)
    assert client.get("/intake/name").status_code == 200
    assert client.get("/contact/name").status_code == 404


def test_multipart_form_posts_are_read(client):
    response = client.post("/contact/name", files={"name": (None, "Clark")})
    assert response.status_code == 302
    assert response.headers["location"] == "/contact/contact-method"


def test_malformed_json_is_a_client_error(client):
    response = client.post(
        "/contact/name",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "bad_request"


def test_root_step_does_not_shadow_sibling_steps():
    wizard = Wizard(
        {
            "/": {"fields": ["name"], "next": "/name"},
            "/name": {"fields": ["name"], "next": "/done"},
        },
        {"name": {"validate": ["required"]}},
        name="root",
    )
    client = TestClient(create_app(Settings(), wizards=[wizard]), follow_redirects=False)

    assert client.get("/name").json()["template"] == "name"
    assert client.get("/").json()["template"] == "index"
    assert client.get("/edit").json()["action"] == "/edit"


def test_entrypoint_imports_the_installed_package(monkeypatch):
    monkeypatch.delenv("FORM_WIZARD_STEPS_PATH", raising=False)
    index = Path(__file__).resolve().parents[1] / "api" / "index.py"
    app = runpy.run_path(str(index))["app"]
    assert TestClient(app).get("/health").json()["ok"] is True
