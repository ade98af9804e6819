"""Vendor delivery and delivery-agent routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..auth import Identity, require_vendor
from ..schemas import AgentCreate, AgentUpdate, AssignAgentIn, DeliveryCreate, DeliveryStatusUpdate, LocationUpdate
from ..services import Services, get_services

router = APIRouter(prefix="/api/vendor")


# -------------------------
# Deliveries
# -------------------------

@router.get("/deliveries")
def vendor_deliveries(status: Optional[str] = None, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.deliveries.list_for_vendor(identity.id, status)


@router.post("/deliveries", status_code=201)
def create_delivery(payload: DeliveryCreate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.deliveries.create_for_vendor(identity.id, payload.model_dump())


@router.get("/deliveries/{delivery_id}")
def get_delivery(delivery_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.deliveries.get_delivery(delivery_id, identity.id)


@router.put("/deliveries/{delivery_id}/status")
def update_delivery_status(delivery_id: str, payload: DeliveryStatusUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    delivery = services.deliveries.set_status(delivery_id, identity.id, payload.newStatus)
    return {"message": "Delivery status updated successfully", "delivery": delivery}


@router.put("/deliveries/{delivery_id}/assign")
def assign_delivery_agent(delivery_id: str, payload: AssignAgentIn, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    delivery = services.deliveries.assign_agent(delivery_id, identity.id, payload.agentId)
    message = "Agent unassigned successfully" if payload.agentId is None else "Agent assigned successfully"
    return {"message": message, "delivery": delivery}


@router.put("/deliveries/{delivery_id}/location")
def update_delivery_location(delivery_id: str, payload: LocationUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.deliveries.update_tracking(delivery_id, identity.id, payload.lat, payload.lon, payload.estimatedDeliveryTime)


# -------------------------
# Delivery agents
# -------------------------

@router.get("/delivery-agents")
def list_agents(activeOnly: bool = False, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.agents.list_agents(identity.id, activeOnly)


@router.post("/delivery-agents", status_code=201)
def create_agent(payload: AgentCreate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.agents.create_agent(identity.id, payload.model_dump(exclude_none=True))


@router.get("/delivery-agents/{agent_id}")
def get_agent(agent_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.agents.get_agent(agent_id, identity.id)


@router.put("/delivery-agents/{agent_id}")
def update_agent(agent_id: str, payload: AgentUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    result = services.agents.update_agent(agent_id, identity.id, payload.model_dump(exclude_none=True))
    message = "Delivery agent updated successfully" if result["updated"] else "Agent data unchanged"
    return dict(result, message=message)


@router.delete("/delivery-agents/{agent_id}")
def delete_agent(agent_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    services.agents.delete_agent(agent_id, identity.id)
    return {"message": "Delivery agent deleted successfully"}
