"""Database models"""
from src.crm_tool.models.base import Base
from src.crm_tool.models.contact import Contact
from src.crm_tool.models.deal import Deal
from src.crm_tool.models.activity import Activity

__all__ = ["Base", "Contact", "Deal", "Activity"]
