import os

from fastapi import APIRouter, Request
from pymongo.errors import PyMongoError

from ..database import Database

router = APIRouter()


@router.get("/")
def read_root():
    return {"message": "Grocer Market Backend Running"}


@router.get("/test")
def test_database(request: Request):
    """Test endpoint to check if database is available and accessible"""
    database: Database = request.app.state.database
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if not database.connected:
        response["database"] = "⚠️ Available but not initialized"
        return response
    response["database"] = "✅ Connected"
    response["connection_status"] = "Connected"
    try:
        response["collections"] = database.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response
