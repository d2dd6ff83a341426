"""Contact and deal listing endpoints"""
from typing import List
from fastapi import APIRouter

from src.crm_tool.api.deps import DbSession
from src.crm_tool.schemas.contact import ContactResponse
from src.crm_tool.schemas.deal import DealResponse
from src.crm_tool.services.entities import list_contacts, list_deals

router = APIRouter(prefix="/api")


@router.get("/contacts", response_model=List[ContactResponse])
def get_contacts(db: DbSession):
    return list_contacts(db)


@router.get("/deals", response_model=List[DealResponse])
def get_deals(db: DbSession):
    return list_deals(db)
