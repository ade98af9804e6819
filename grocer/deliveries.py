"""Delivery lifecycle.

Each order gets at most one delivery record. Its status moves through the
states of ``DeliveryStatus``; ``plan_transition`` is the single place that
decides whether a move is allowed and which fields change with it:

- any active state may move to any state, including back to
  ``Pending Assignment``;
- ``Delivered`` and ``Cancelled`` are terminal: re-requesting the same
  state is a no-op, anything else is a conflict;
- moving to ``Delivered`` stamps ``actualDeliveryTime``. Since the stamp is
  only written when leaving an active state, it is written once.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .agents import AgentService
from .database import CUSTOMERS, DELIVERIES, ORDERS, Database, serialize_doc, to_object_id, utcnow
from .errors import ConflictError, NotFoundError, ValidationError
from .schemas import Address, Delivery

logger = structlog.get_logger(__name__)


class DeliveryStatus(str, Enum):
    PENDING_ASSIGNMENT = "Pending Assignment"
    ASSIGNED = "Assigned"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    ATTEMPTED_DELIVERY = "Attempted Delivery"
    CANCELLED = "Cancelled"
    DELAYED = "Delayed"


TERMINAL_STATUSES = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED})
ACTIVE_STATUSES = frozenset(DeliveryStatus) - TERMINAL_STATUSES


def parse_status(value: Any) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise ValidationError("Invalid or missing newStatus provided")


def plan_transition(current: DeliveryStatus, requested: DeliveryStatus, now: datetime) -> Optional[Dict[str, Any]]:
    """Return the fields to $set for current -> requested, or None for a no-op."""
    if current in TERMINAL_STATUSES:
        if requested == current:
            return None
        raise ConflictError(f"Delivery is already {current.value} and cannot change to {requested.value}")
    changes: Dict[str, Any] = {"status": requested.value, "updatedAt": now}
    if requested == DeliveryStatus.DELIVERED:
        changes["actualDeliveryTime"] = now
    return changes


def _new_delivery_id() -> str:
    return f"DEL-{uuid4().hex[:5].upper()}"


class DeliveryService:
    def __init__(self, database: Database, agents: AgentService):
        self.database = database
        self.agent_service = agents

    @property
    def deliveries(self):
        return self.database[DELIVERIES]

    def _scoped(self, delivery_id: str, vendor_id: str) -> Dict[str, Any]:
        return {"_id": to_object_id(delivery_id, "delivery id"), "vendorId": vendor_id}

    def _load(self, delivery_id: str, vendor_id: str) -> Dict[str, Any]:
        doc = self.deliveries.find_one(self._scoped(delivery_id, vendor_id))
        if not doc:
            raise NotFoundError("Delivery not found or access denied")
        return doc

    def _apply(self, doc: Dict[str, Any], requested: DeliveryStatus, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        changes = plan_transition(DeliveryStatus(doc["status"]), requested, utcnow())
        if changes is None:
            return doc
        changes.update(extra or {})
        updated = self.deliveries.find_one_and_update(
            {
                "_id": doc["_id"],
                "vendorId": doc["vendorId"],
                "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
            },
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            # finished by a concurrent request between the read and the write
            raise ConflictError("Delivery was completed by another request")
        return updated

    # -------------------------
    # Creation
    # -------------------------

    def create_for_order(
        self,
        order: Dict[str, Any],
        customer_phone: Optional[str] = None,
        estimated_delivery_time: Optional[datetime] = None,
        package_size: Optional[str] = None,
        delivery_notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Start fulfillment for an order; returns the existing delivery if there is one."""
        order_id = str(order["_id"])
        existing = self.deliveries.find_one({"orderId": order_id})
        if existing:
            return serialize_doc(existing)

        customer_name = order.get("customerName")
        if not customer_name:
            customer = None
            try:
                customer = self.database[CUSTOMERS].find_one({"_id": to_object_id(order["userId"])}, {"name": 1})
            except ValidationError:
                pass
            customer_name = (customer or {}).get("name") or "Customer"

        delivery = Delivery(
            deliveryId=_new_delivery_id(),
            orderId=order_id,
            vendorId=order["vendorId"],
            customerId=order["userId"],
            customerName=customer_name,
            customerAddress=Address(**(order.get("deliveryAddress") or {})),
            customerPhone=customer_phone,
            estimatedDeliveryTime=estimated_delivery_time,
            packageSize=package_size,
            deliveryNotes=delivery_notes,
            orderValue=order.get("totalAmount"),
        )
        try:
            new_id = self.database.create_document(DELIVERIES, delivery)
        except DuplicateKeyError:
            return serialize_doc(self.deliveries.find_one({"orderId": order_id}))
        logger.info("delivery_created", delivery_id=new_id, order_id=order_id, vendor_id=order["vendorId"])
        return serialize_doc(self.deliveries.find_one({"_id": to_object_id(new_id)}))

    def create_for_vendor(self, vendor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("orderId"):
            raise ValidationError("Missing required field: orderId")
        order = self.database[ORDERS].find_one({"_id": to_object_id(data["orderId"], "order id"), "vendorId": vendor_id})
        if not order:
            raise NotFoundError("Order not found or access denied")
        if order.get("status") == "Cancelled":
            raise ConflictError("Cannot start delivery for a cancelled order")
        return self.create_for_order(
            order,
            customer_phone=data.get("customerPhone"),
            estimated_delivery_time=data.get("estimatedDeliveryTime"),
            package_size=data.get("packageSize"),
            delivery_notes=data.get("deliveryNotes"),
        )

    # -------------------------
    # Transitions
    # -------------------------

    def set_status(self, delivery_id: str, vendor_id: str, new_status: Any) -> Dict[str, Any]:
        requested = parse_status(new_status)
        doc = self._apply(self._load(delivery_id, vendor_id), requested)
        logger.info("delivery_status_changed", delivery_id=delivery_id, vendor_id=vendor_id, status=doc["status"])
        return serialize_doc(doc)

    def assign_agent(self, delivery_id: str, vendor_id: str, agent_id: Optional[str]) -> Dict[str, Any]:
        query = self._scoped(delivery_id, vendor_id)
        if agent_id is not None:
            agent = self.agent_service.find_agent(agent_id, vendor_id)
            if not agent:
                raise NotFoundError("Delivery agent not found or access denied")
            if not agent.get("isActive", True):
                raise ValidationError("Delivery agent is inactive")
            requested = DeliveryStatus.ASSIGNED
        else:
            requested = DeliveryStatus.PENDING_ASSIGNMENT

        doc = self.deliveries.find_one(query)
        if not doc:
            raise NotFoundError("Delivery not found or access denied")
        if DeliveryStatus(doc["status"]) in TERMINAL_STATUSES:
            raise ConflictError(f"Delivery is already {doc['status']}; agent cannot be changed")
        doc = self._apply(doc, requested, {"assignedAgentId": agent_id})
        logger.info("delivery_agent_assigned", delivery_id=delivery_id, vendor_id=vendor_id, agent_id=agent_id)
        return serialize_doc(doc)

    def update_tracking(
        self,
        delivery_id: str,
        vendor_id: str,
        lat: float,
        lon: float,
        estimated_delivery_time: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = utcnow()
        changes: Dict[str, Any] = {
            "currentLocation": {"lat": lat, "lon": lon},
            "lastLocationUpdate": now,
            "updatedAt": now,
        }
        if estimated_delivery_time is not None:
            changes["estimatedDeliveryTime"] = estimated_delivery_time
        query = self._scoped(delivery_id, vendor_id)
        doc = self.deliveries.find_one_and_update(
            dict(query, status={"$in": [s.value for s in ACTIVE_STATUSES]}),
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            current = self._load(delivery_id, vendor_id)
            raise ConflictError(f"Delivery is already {current['status']}; tracking is closed")
        return serialize_doc(doc)

    # -------------------------
    # Reads
    # -------------------------

    def get_delivery(self, delivery_id: str, vendor_id: str) -> Dict[str, Any]:
        return self._with_agents([self._load(delivery_id, vendor_id)])[0]

    def list_for_vendor(self, vendor_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"vendorId": vendor_id}
        if status:
            query["status"] = parse_status(status).value
        docs = list(self.deliveries.find(query).sort("createdAt", DESCENDING))
        return self._with_agents(docs)

    def _with_agents(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        agents = self.agent_service.find_many([d["assignedAgentId"] for d in docs if d.get("assignedAgentId")])
        out = []
        for doc in docs:
            item = serialize_doc(doc)
            agent = agents.get(doc.get("assignedAgentId") or "")
            # a deleted agent renders as unassigned detail, not an error
            item["agent"] = {
                "id": str(agent["_id"]),
                "name": agent.get("name"),
                "phone": agent.get("phone"),
                "vehicleType": agent.get("vehicleType"),
            } if agent else None
            out.append(item)
        return out
