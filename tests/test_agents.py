"""Tests for the delivery agent roster."""

import pytest

from grocer.agents import normalize_vehicle_type
from grocer.errors import ConflictError, MissingFieldError, NotFoundError, ValidationError


@pytest.mark.parametrize("raw, expected", [
    (None, "Bike"),
    ("bike", "Bike"),
    ("SCOOTER", "Scooter"),
    (" car ", "Car"),
    ("Other", "Other"),
])
def test_normalize_vehicle_type(raw, expected):
    assert normalize_vehicle_type(raw) == expected


def test_unknown_vehicle_type():
    with pytest.raises(ValidationError):
        normalize_vehicle_type("Hovercraft")


class TestAgentService:
    def test_create_with_defaults(self, services, vendor):
        agent = services.agents.create_agent(vendor["id"], {"name": " Sam Rider ", "phone": "555-0100"})
        assert agent["name"] == "Sam Rider"
        assert agent["vehicleType"] == "Bike"
        assert agent["isActive"] is True
        assert agent["vendorId"] == vendor["id"]

    @pytest.mark.parametrize("missing", ["name", "phone"])
    def test_required_fields(self, services, vendor, missing):
        data = {"name": "Sam", "phone": "555-0100"}
        del data[missing]
        with pytest.raises(MissingFieldError):
            services.agents.create_agent(vendor["id"], data)

    def test_duplicate_phone_per_vendor(self, services, vendor, other_vendor):
        services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "555-0100"})
        with pytest.raises(ConflictError):
            services.agents.create_agent(vendor["id"], {"name": "Sam Again", "phone": "555-0100"})
        # another vendor may use the same number
        services.agents.create_agent(other_vendor["id"], {"name": "Kim", "phone": "555-0100"})

    def test_list_active_only(self, services, vendor, other_vendor):
        services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "1"})
        services.agents.create_agent(vendor["id"], {"name": "Lee", "phone": "2", "isActive": False})
        services.agents.create_agent(other_vendor["id"], {"name": "Kim", "phone": "3"})

        assert {a["name"] for a in services.agents.list_agents(vendor["id"])} == {"Sam", "Lee"}
        assert [a["name"] for a in services.agents.list_agents(vendor["id"], active_only=True)] == ["Sam"]

    def test_update(self, services, vendor):
        agent = services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "555-0100"})
        result = services.agents.update_agent(agent["id"], vendor["id"], {"vehicleType": "scooter"})
        assert result == {"agentId": agent["id"], "updated": True}
        assert services.agents.get_agent(agent["id"], vendor["id"])["vehicleType"] == "Scooter"

        unchanged = services.agents.update_agent(agent["id"], vendor["id"], {"name": "Sam"})
        assert unchanged["updated"] is False

    def test_update_validation(self, services, vendor):
        agent = services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "555-0100"})
        with pytest.raises(ValidationError):
            services.agents.update_agent(agent["id"], vendor["id"], {})
        with pytest.raises(ValidationError):
            services.agents.update_agent(agent["id"], vendor["id"], {"vehicleType": "Rocket"})
        with pytest.raises(ValidationError):
            services.agents.update_agent(agent["id"], vendor["id"], {"name": "  "})

    def test_update_to_taken_phone(self, services, vendor):
        services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "1"})
        lee = services.agents.create_agent(vendor["id"], {"name": "Lee", "phone": "2"})
        with pytest.raises(ConflictError):
            services.agents.update_agent(lee["id"], vendor["id"], {"phone": "1"})

    def test_other_vendor_cannot_touch(self, services, vendor, other_vendor):
        agent = services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "555-0100"})
        with pytest.raises(NotFoundError):
            services.agents.get_agent(agent["id"], other_vendor["id"])
        with pytest.raises(NotFoundError):
            services.agents.update_agent(agent["id"], other_vendor["id"], {"name": "Mine"})
        with pytest.raises(NotFoundError):
            services.agents.delete_agent(agent["id"], other_vendor["id"])

    def test_delete(self, services, vendor):
        agent = services.agents.create_agent(vendor["id"], {"name": "Sam", "phone": "555-0100"})
        services.agents.delete_agent(agent["id"], vendor["id"])
        with pytest.raises(NotFoundError):
            services.agents.get_agent(agent["id"], vendor["id"])


class TestAgentApi:
    def test_crud(self, client, vendor):
        headers = vendor["headers"]
        created = client.post("/api/vendor/delivery-agents", json={"name": "Sam", "phone": "555-0100"}, headers=headers)
        assert created.status_code == 201
        agent_id = created.json()["id"]

        updated = client.put(f"/api/vendor/delivery-agents/{agent_id}", json={"vehicleType": "Car"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["message"] == "Delivery agent updated successfully"

        same = client.put(f"/api/vendor/delivery-agents/{agent_id}", json={"vehicleType": "Car"}, headers=headers)
        assert same.json()["message"] == "Agent data unchanged"

        assert client.get(f"/api/vendor/delivery-agents/{agent_id}", headers=headers).json()["vehicleType"] == "Car"
        assert client.delete(f"/api/vendor/delivery-agents/{agent_id}", headers=headers).status_code == 200
        assert client.get("/api/vendor/delivery-agents", headers=headers).json() == []

    def test_invalid_vehicle_is_400(self, client, vendor):
        response = client.post("/api/vendor/delivery-agents", json={"name": "Sam", "phone": "1", "vehicleType": "Tank"}, headers=vendor["headers"])
        assert response.status_code == 400

    def test_duplicate_phone_is_409(self, client, vendor):
        client.post("/api/vendor/delivery-agents", json={"name": "Sam", "phone": "1"}, headers=vendor["headers"])
        response = client.post("/api/vendor/delivery-agents", json={"name": "Lee", "phone": "1"}, headers=vendor["headers"])
        assert response.status_code == 409

    def test_customers_are_forbidden(self, client, customer):
        assert client.get("/api/vendor/delivery-agents", headers=customer["headers"]).status_code == 403
