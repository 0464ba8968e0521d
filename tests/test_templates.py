"""
Product Template Tests — service rules and the /templates endpoints.
"""

import pytest

from sample_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from sample_tracker.models import db
from sample_tracker.services.template_service import (
    create_template,
    delete_template,
    list_templates,
    update_template,
)


def _items():
    return [{
        "product_type": "marble",
        "quality": "Statuario",
        "sample_size": "12x12",
        "thickness": "18mm",
        "quantity": 2,
        "image_url": "https://img.example/1.png",
    }]


def _headers(user_id):
    return {"X-User-Id": user_id}


class TestTemplateService:
    def test_create_strips_images_and_name(self, profiles):
        tpl = create_template(profiles["requester"], "  Lobby set  ", _items())
        db.session.commit()
        assert tpl["template_name"] == "Lobby set"
        assert "image_url" not in tpl["items"][0]
        assert tpl["items"][0]["quality"] == "Statuario"

    def test_name_unique_per_user(self, profiles):
        create_template(profiles["requester"], "Lobby", _items())
        db.session.commit()
        with pytest.raises(ConflictError):
            create_template(profiles["requester"], "Lobby", _items())

    def test_same_name_allowed_for_other_user(self, profiles):
        create_template(profiles["requester"], "Lobby", _items())
        create_template(profiles["requester2"], "Lobby", _items())
        db.session.commit()
        assert len(list_templates(profiles["requester2"])) == 1

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 201])
    def test_invalid_name(self, profiles, name):
        with pytest.raises(ValidationError):
            create_template(profiles["requester"], name, _items())

    def test_items_required(self, profiles):
        with pytest.raises(ValidationError):
            create_template(profiles["requester"], "Empty", [])

    def test_list_only_own(self, profiles):
        create_template(profiles["requester"], "Mine", _items())
        create_template(profiles["requester2"], "Theirs", _items())
        db.session.commit()
        assert [t["template_name"] for t in list_templates(profiles["requester"])] == ["Mine"]

    def test_update_rename_and_items(self, profiles):
        tpl = create_template(profiles["requester"], "Lobby", _items())
        db.session.commit()
        new_items = [dict(_items()[0], quality="Calacatta")]
        updated = update_template(tpl["id"], profiles["requester"], template_name="Atrium", items=new_items)
        assert updated["template_name"] == "Atrium"
        assert updated["items"][0]["quality"] == "Calacatta"

    def test_rename_to_existing_name_conflicts(self, profiles):
        create_template(profiles["requester"], "Lobby", _items())
        tpl = create_template(profiles["requester"], "Atrium", _items())
        db.session.commit()
        with pytest.raises(ConflictError):
            update_template(tpl["id"], profiles["requester"], template_name="Lobby")

    def test_rename_to_own_name_is_fine(self, profiles):
        tpl = create_template(profiles["requester"], "Lobby", _items())
        db.session.commit()
        assert update_template(tpl["id"], profiles["requester"], template_name="Lobby")["template_name"] == "Lobby"

    def test_other_users_template_not_found(self, profiles):
        tpl = create_template(profiles["requester"], "Lobby", _items())
        db.session.commit()
        with pytest.raises(NotFoundError):
            update_template(tpl["id"], profiles["requester2"], template_name="Mine now")
        with pytest.raises(NotFoundError):
            delete_template(tpl["id"], profiles["requester2"])

    def test_delete(self, profiles):
        tpl = create_template(profiles["requester"], "Lobby", _items())
        db.session.commit()
        delete_template(tpl["id"], profiles["requester"])
        db.session.commit()
        assert list_templates(profiles["requester"]) == []


class TestTemplateEndpoints:
    def test_crud_round(self, client, profiles):
        headers = _headers(profiles["requester"])
        res = client.post("/api/v1/templates", json={"template_name": "Lobby", "items": _items()},
                          headers=headers)
        assert res.status_code == 201
        template_id = res.get_json()["id"]

        res = client.put(f"/api/v1/templates/{template_id}", json={"template_name": "Atrium"},
                         headers=headers)
        assert res.status_code == 200
        assert res.get_json()["template_name"] == "Atrium"

        res = client.get("/api/v1/templates", headers=headers)
        assert [t["template_name"] for t in res.get_json()] == ["Atrium"]

        res = client.delete(f"/api/v1/templates/{template_id}", headers=headers)
        assert res.status_code == 200
        assert client.get("/api/v1/templates", headers=headers).get_json() == []

    def test_duplicate_name_409(self, client, profiles):
        headers = _headers(profiles["requester"])
        body = {"template_name": "Lobby", "items": _items()}
        assert client.post("/api/v1/templates", json=body, headers=headers).status_code == 201
        res = client.post("/api/v1/templates", json=body, headers=headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_foreign_template_404(self, client, profiles):
        res = client.post("/api/v1/templates", json={"template_name": "Lobby", "items": _items()},
                          headers=_headers(profiles["requester"]))
        template_id = res.get_json()["id"]
        res = client.delete(f"/api/v1/templates/{template_id}", headers=_headers(profiles["requester2"]))
        assert res.status_code == 404

    def test_missing_actor_403(self, client, profiles):
        res = client.post("/api/v1/templates", json={"template_name": "Lobby", "items": _items()})
        assert res.status_code == 403
