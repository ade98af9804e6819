"""Tests for the delivery lifecycle."""

import re
from datetime import datetime, timedelta, timezone

import pytest

from grocer.deliveries import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    DeliveryStatus,
    parse_status,
    plan_transition,
)
from grocer.errors import ConflictError, NotFoundError, ValidationError

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _parse(ts):
    return datetime.fromisoformat(ts)


class TestPlanTransition:
    @pytest.mark.parametrize("current", sorted(ACTIVE_STATUSES, key=lambda s: s.value))
    @pytest.mark.parametrize("requested", list(DeliveryStatus))
    def test_active_states_move_anywhere(self, current, requested):
        changes = plan_transition(current, requested, NOW)
        assert changes["status"] == requested.value
        assert changes["updatedAt"] == NOW
        if requested == DeliveryStatus.DELIVERED:
            assert changes["actualDeliveryTime"] == NOW
        else:
            assert "actualDeliveryTime" not in changes

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_same_state_is_noop(self, terminal):
        assert plan_transition(terminal, terminal, NOW) is None

    @pytest.mark.parametrize("terminal, requested", [
        (terminal, requested)
        for terminal in sorted(TERMINAL_STATUSES, key=lambda s: s.value)
        for requested in DeliveryStatus
        if requested != terminal
    ])
    def test_terminal_states_are_locked(self, terminal, requested):
        with pytest.raises(ConflictError):
            plan_transition(terminal, requested, NOW)

    def test_parse_status(self):
        assert parse_status("Out for Delivery") is DeliveryStatus.OUT_FOR_DELIVERY
        for bad in ("Lost", "delivered", None):
            with pytest.raises(ValidationError):
                parse_status(bad)


@pytest.fixture
def delivery(services, vendor, customer, make_order):
    order = make_order(customer["id"], vendor["id"])
    return services.deliveries.create_for_vendor(vendor["id"], {"orderId": order["id"], "packageSize": "Small"})


@pytest.fixture
def agent(services, vendor):
    return services.agents.create_agent(vendor["id"], {"name": "Sam Rider", "phone": "555-0100"})


class TestCreateDelivery:
    def test_create_for_vendor(self, delivery, vendor):
        assert re.fullmatch(r"DEL-[0-9A-F]{5}", delivery["deliveryId"])
        assert delivery["vendorId"] == vendor["id"]
        assert delivery["status"] == "Pending Assignment"
        assert delivery["assignedAgentId"] is None
        assert delivery["actualDeliveryTime"] is None
        assert delivery["packageSize"] == "Small"

    def test_one_delivery_per_order(self, services, vendor, delivery):
        again = services.deliveries.create_for_vendor(vendor["id"], {"orderId": delivery["orderId"]})
        assert again["id"] == delivery["id"]
        assert len(services.deliveries.list_for_vendor(vendor["id"])) == 1

    def test_order_of_other_vendor(self, services, vendor, other_vendor, customer, make_order):
        order = make_order(customer["id"], vendor["id"])
        with pytest.raises(NotFoundError):
            services.deliveries.create_for_vendor(other_vendor["id"], {"orderId": order["id"]})

    def test_cancelled_order(self, services, vendor, customer, make_order):
        order = make_order(customer["id"], vendor["id"])
        services.orders.update_status(order["id"], "Cancelled", vendor["id"])
        with pytest.raises(ConflictError):
            services.deliveries.create_for_vendor(vendor["id"], {"orderId": order["id"]})

    def test_order_id_required(self, services, vendor):
        with pytest.raises(ValidationError):
            services.deliveries.create_for_vendor(vendor["id"], {})


class TestAssignment:
    def test_assign_and_unassign(self, services, vendor, delivery, agent):
        assigned = services.deliveries.assign_agent(delivery["id"], vendor["id"], agent["id"])
        assert assigned["status"] == "Assigned"
        assert assigned["assignedAgentId"] == agent["id"]

        detail = services.deliveries.get_delivery(delivery["id"], vendor["id"])
        assert detail["agent"] == {"id": agent["id"], "name": "Sam Rider", "phone": "555-0100", "vehicleType": "Bike"}

        unassigned = services.deliveries.assign_agent(delivery["id"], vendor["id"], None)
        assert unassigned["status"] == "Pending Assignment"
        assert unassigned["assignedAgentId"] is None

    def test_empty_agent_id_is_rejected(self, services, vendor, delivery):
        with pytest.raises(ValidationError):
            services.deliveries.assign_agent(delivery["id"], vendor["id"], "")
        assert services.deliveries.get_delivery(delivery["id"], vendor["id"])["status"] == "Pending Assignment"

    def test_agent_of_other_vendor(self, services, vendor, other_vendor, delivery):
        foreign = services.agents.create_agent(other_vendor["id"], {"name": "Kim", "phone": "555-0199"})
        with pytest.raises(NotFoundError):
            services.deliveries.assign_agent(delivery["id"], vendor["id"], foreign["id"])

    def test_inactive_agent(self, services, vendor, delivery, agent):
        services.agents.update_agent(agent["id"], vendor["id"], {"isActive": False})
        with pytest.raises(ValidationError):
            services.deliveries.assign_agent(delivery["id"], vendor["id"], agent["id"])

    def test_cannot_reassign_after_delivery(self, services, vendor, delivery, agent):
        services.deliveries.set_status(delivery["id"], vendor["id"], "Delivered")
        with pytest.raises(ConflictError):
            services.deliveries.assign_agent(delivery["id"], vendor["id"], agent["id"])

    def test_deleted_agent_renders_as_none(self, services, vendor, delivery, agent):
        services.deliveries.assign_agent(delivery["id"], vendor["id"], agent["id"])
        services.agents.delete_agent(agent["id"], vendor["id"])

        detail = services.deliveries.get_delivery(delivery["id"], vendor["id"])
        assert detail["assignedAgentId"] == agent["id"]
        assert detail["agent"] is None


class TestStatusUpdates:
    def test_delivered_stamps_time_once(self, services, vendor, delivery):
        before = datetime.now(timezone.utc) - timedelta(seconds=1)
        delivered = services.deliveries.set_status(delivery["id"], vendor["id"], "Delivered")
        after = datetime.now(timezone.utc) + timedelta(seconds=1)

        stamped = _parse(delivered["actualDeliveryTime"])
        assert before <= stamped <= after

        again = services.deliveries.set_status(delivery["id"], vendor["id"], "Delivered")
        assert again["actualDeliveryTime"] == delivered["actualDeliveryTime"]

    def test_terminal_is_locked(self, services, vendor, delivery):
        services.deliveries.set_status(delivery["id"], vendor["id"], "Cancelled")
        with pytest.raises(ConflictError):
            services.deliveries.set_status(delivery["id"], vendor["id"], "Out for Delivery")

    def test_active_states_move_freely(self, services, vendor, delivery):
        services.deliveries.set_status(delivery["id"], vendor["id"], "Delayed")
        services.deliveries.set_status(delivery["id"], vendor["id"], "Attempted Delivery")
        back = services.deliveries.set_status(delivery["id"], vendor["id"], "Pending Assignment")
        assert back["status"] == "Pending Assignment"
        assert back["actualDeliveryTime"] is None

    def test_invalid_status(self, services, vendor, delivery):
        with pytest.raises(ValidationError):
            services.deliveries.set_status(delivery["id"], vendor["id"], "Teleported")

    def test_other_vendor_gets_not_found(self, services, other_vendor, delivery):
        with pytest.raises(NotFoundError):
            services.deliveries.set_status(delivery["id"], other_vendor["id"], "Delivered")
        with pytest.raises(NotFoundError):
            services.deliveries.get_delivery(delivery["id"], other_vendor["id"])

    def test_list_filters_by_status(self, services, vendor, customer, delivery, make_order):
        order = make_order(customer["id"], vendor["id"])
        other = services.deliveries.create_for_vendor(vendor["id"], {"orderId": order["id"]})
        services.deliveries.set_status(other["id"], vendor["id"], "Delayed")

        delayed = services.deliveries.list_for_vendor(vendor["id"], "Delayed")
        assert [d["id"] for d in delayed] == [other["id"]]
        with pytest.raises(ValidationError):
            services.deliveries.list_for_vendor(vendor["id"], "Lost")


class TestTracking:
    def test_update_location(self, services, vendor, delivery):
        eta = datetime(2030, 1, 1, 18, 30, tzinfo=timezone.utc)
        tracked = services.deliveries.update_tracking(delivery["id"], vendor["id"], 52.52, 13.405, eta)
        assert tracked["currentLocation"] == {"lat": 52.52, "lon": 13.405}
        assert tracked["lastLocationUpdate"] is not None
        assert _parse(tracked["estimatedDeliveryTime"]) == eta

    def test_tracking_closed_after_delivery(self, services, vendor, delivery):
        services.deliveries.set_status(delivery["id"], vendor["id"], "Delivered")
        with pytest.raises(ConflictError):
            services.deliveries.update_tracking(delivery["id"], vendor["id"], 1.0, 2.0)


class TestDeliveryApi:
    def test_lifecycle(self, client, vendor, customer, make_order):
        order = make_order(customer["id"], vendor["id"])
        headers = vendor["headers"]

        created = client.post("/api/vendor/deliveries", json={"orderId": order["id"]}, headers=headers)
        assert created.status_code == 201
        delivery_id = created.json()["id"]

        agent = client.post("/api/vendor/delivery-agents", json={"name": "Sam", "phone": "555-0100", "vehicleType": "car"}, headers=headers)
        assert agent.status_code == 201

        assigned = client.put(f"/api/vendor/deliveries/{delivery_id}/assign", json={"agentId": agent.json()["id"]}, headers=headers)
        assert assigned.status_code == 200
        assert assigned.json()["delivery"]["status"] == "Assigned"

        moving = client.put(f"/api/vendor/deliveries/{delivery_id}/location", json={"lat": 10.0, "lon": 20.0}, headers=headers)
        assert moving.status_code == 200

        done = client.put(f"/api/vendor/deliveries/{delivery_id}/status", json={"newStatus": "Delivered"}, headers=headers)
        assert done.status_code == 200
        assert done.json()["delivery"]["actualDeliveryTime"]

        locked = client.put(f"/api/vendor/deliveries/{delivery_id}/status", json={"newStatus": "Assigned"}, headers=headers)
        assert locked.status_code == 409

        listing = client.get("/api/vendor/deliveries", headers=headers).json()
        assert listing[0]["agent"]["vehicleType"] == "Car"

    def test_invalid_status_is_400(self, client, vendor, delivery):
        response = client.put(f"/api/vendor/deliveries/{delivery['id']}/status", json={"newStatus": "Lost"}, headers=vendor["headers"])
        assert response.status_code == 400

    def test_assign_requires_agent_key(self, client, vendor, delivery):
        response = client.put(f"/api/vendor/deliveries/{delivery['id']}/assign", json={}, headers=vendor["headers"])
        assert response.status_code == 400

    def test_blank_agent_id_is_400(self, client, vendor, delivery):
        response = client.put(f"/api/vendor/deliveries/{delivery['id']}/assign", json={"agentId": ""}, headers=vendor["headers"])
        assert response.status_code == 400

    def test_bad_coordinates_are_400(self, client, vendor, delivery):
        response = client.put(f"/api/vendor/deliveries/{delivery['id']}/location", json={"lat": 100, "lon": 0}, headers=vendor["headers"])
        assert response.status_code == 400

    def test_other_vendor_is_404(self, client, other_vendor, delivery):
        response = client.get(f"/api/vendor/deliveries/{delivery['id']}", headers=other_vendor["headers"])
        assert response.status_code == 404
