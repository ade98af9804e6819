"""Vendor-scoped roster of delivery agents."""

from typing import Any, Dict, List, Optional

import structlog
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .catalog import require_fields
from .database import DELIVERY_AGENTS, Database, serialize_doc, to_object_id, utcnow
from .errors import ConflictError, NotFoundError, ValidationError
from .schemas import VEHICLE_TYPES, DeliveryAgent

logger = structlog.get_logger(__name__)

AGENT_UPDATABLE_FIELDS = ("name", "phone", "vehicleType", "vehicleDetails", "isActive")


def normalize_vehicle_type(value: Optional[str]) -> str:
    if value is None:
        return "Bike"
    for vehicle in VEHICLE_TYPES:
        if str(value).strip().lower() == vehicle.lower():
            return vehicle
    raise ValidationError(f"Invalid vehicleType: {value}. Must be one of {', '.join(VEHICLE_TYPES)}")


class AgentService:
    def __init__(self, database: Database):
        self.database = database

    @property
    def agents(self):
        return self.database[DELIVERY_AGENTS]

    def list_agents(self, vendor_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"vendorId": vendor_id}
        if active_only:
            query["isActive"] = True
        return [serialize_doc(a) for a in self.agents.find(query).sort("createdAt", DESCENDING)]

    def find_agent(self, agent_id: str, vendor_id: str) -> Optional[Dict[str, Any]]:
        return self.agents.find_one({"_id": to_object_id(agent_id, "agent id"), "vendorId": vendor_id})

    def get_agent(self, agent_id: str, vendor_id: str) -> Dict[str, Any]:
        doc = self.find_agent(agent_id, vendor_id)
        if not doc:
            raise NotFoundError("Agent not found or access denied")
        return serialize_doc(doc)

    def create_agent(self, vendor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        require_fields(data, ("name", "phone"))
        agent = DeliveryAgent(
            vendorId=vendor_id,
            name=str(data["name"]).strip(),
            phone=str(data["phone"]).strip(),
            vehicleType=normalize_vehicle_type(data.get("vehicleType")),
            vehicleDetails=data.get("vehicleDetails"),
            isActive=True if data.get("isActive") is None else bool(data["isActive"]),
        )
        try:
            new_id = self.database.create_document(DELIVERY_AGENTS, agent)
        except DuplicateKeyError:
            raise ConflictError("A delivery agent with this phone number already exists")
        logger.info("delivery_agent_created", agent_id=new_id, vendor_id=vendor_id)
        return serialize_doc(self.agents.find_one({"_id": to_object_id(new_id)}))

    def update_agent(self, agent_id: str, vendor_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: patch[k] for k in AGENT_UPDATABLE_FIELDS if patch.get(k) is not None}
        if not data:
            raise ValidationError("No update fields provided")
        if "vehicleType" in data:
            data["vehicleType"] = normalize_vehicle_type(data["vehicleType"])
        for field in ("name", "phone"):
            if field in data:
                data[field] = str(data[field]).strip()
                if not data[field]:
                    raise ValidationError(f"{field} cannot be empty")

        try:
            before = self.agents.find_one_and_update(
                {"_id": to_object_id(agent_id, "agent id"), "vendorId": vendor_id},
                {"$set": dict(data, updatedAt=utcnow())},
                return_document=ReturnDocument.BEFORE,
            )
        except DuplicateKeyError:
            raise ConflictError("A delivery agent with this phone number already exists")
        if before is None:
            raise NotFoundError("Agent not found or access denied")

        updated = any(before.get(k) != v for k, v in data.items())
        logger.info("delivery_agent_updated", agent_id=agent_id, vendor_id=vendor_id, updated=updated)
        return {"agentId": agent_id, "updated": updated}

    def delete_agent(self, agent_id: str, vendor_id: str) -> None:
        """Hard delete. Deliveries that reference the agent keep the dangling id."""
        res = self.agents.delete_one({"_id": to_object_id(agent_id, "agent id"), "vendorId": vendor_id})
        if res.deleted_count == 0:
            raise NotFoundError("Agent not found or access denied")
        logger.info("delivery_agent_deleted", agent_id=agent_id, vendor_id=vendor_id)

    def find_many(self, agent_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        object_ids = []
        for agent_id in set(agent_ids):
            try:
                object_ids.append(to_object_id(agent_id))
            except ValidationError:
                continue
        if not object_ids:
            return {}
        return {str(a["_id"]): a for a in self.agents.find({"_id": {"$in": object_ids}})}
