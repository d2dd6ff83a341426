"""Importable entity types and their create functions"""
import enum
import logging
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.crm_tool.models.activity import Activity
from src.crm_tool.models.contact import Contact
from src.crm_tool.models.deal import Deal
from src.crm_tool.schemas.contact import ContactCreate, ContactResponse
from src.crm_tool.schemas.csv_import import FieldSpec
from src.crm_tool.schemas.deal import DealCreate, DealResponse
from src.crm_tool.services.import_errors import EntityValidationError

logger = logging.getLogger(__name__)


class EntityType(str, enum.Enum):
    CONTACTS = "contacts"
    DEALS = "deals"

    @property
    def response_key(self) -> str:
        return f"imported{self.value.capitalize()}"

    @property
    def resource_key(self) -> str:
        return f"/api/{self.value}"


CONTACT_FIELDS: List[FieldSpec] = [
    FieldSpec(key="firstName", label="First Name", required=True),
    FieldSpec(key="lastName", label="Last Name", required=True),
    FieldSpec(key="email", label="Email"),
    FieldSpec(key="phone", label="Phone Number"),
    FieldSpec(key="company", label="Company"),
    FieldSpec(key="status", label="Status"),
    FieldSpec(key="source", label="Source"),
    FieldSpec(key="notes", label="Notes"),
]

DEAL_FIELDS: List[FieldSpec] = [
    FieldSpec(key="title", label="Deal Title", required=True),
    FieldSpec(key="contactId", label="Contact ID", required=True),
    FieldSpec(key="stage", label="Stage", required=True),
    FieldSpec(key="amount", label="Amount"),
    FieldSpec(key="description", label="Description"),
]

FIELD_SPECS: Dict[EntityType, List[FieldSpec]] = {
    EntityType.CONTACTS: CONTACT_FIELDS,
    EntityType.DEALS: DEAL_FIELDS,
}


def resolve_entity_type(value: str) -> EntityType:
    try:
        return EntityType(value)
    except ValueError:
        allowed = ", ".join(e.value for e in EntityType)
        raise ValueError(f"Unknown entity type '{value}'. Expected one of: {allowed}")


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "record"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _validate(schema: type, record: Dict[str, Any]) -> Any:
    try:
        return schema.model_validate(record)
    except ValidationError as e:
        raise EntityValidationError(format_validation_error(e)) from e


def create_contact(db: Session, record: Dict[str, Any]) -> ContactResponse:
    data: ContactCreate = _validate(ContactCreate, record)
    try:
        contact = Contact(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone,
            company=data.company,
            status=data.status or "lead",
            source=data.source,
            notes=data.notes,
        )
        db.add(contact)
        db.flush()

        db.add(Activity(
            type="note",
            title="New contact created",
            description=f"{contact.first_name} {contact.last_name} from {contact.company or 'N/A'}",
            contact_id=contact.id,
        ))
        db.commit()
        db.refresh(contact)
    except Exception:
        db.rollback()
        raise
    return ContactResponse.model_validate(contact)


def create_deal(db: Session, record: Dict[str, Any]) -> DealResponse:
    data: DealCreate = _validate(DealCreate, record)
    try:
        deal = Deal(
            title=data.title,
            contact_id=data.contact_id,
            amount=data.amount,
            stage=data.stage,
            description=data.description,
        )
        db.add(deal)
        db.flush()

        summary = f"{deal.title} (${deal.amount})" if deal.amount is not None else deal.title
        db.add(Activity(
            type="note",
            title="New deal created",
            description=summary,
            contact_id=deal.contact_id,
            deal_id=deal.id,
        ))
        db.commit()
        db.refresh(deal)
    except Exception:
        db.rollback()
        raise
    return DealResponse.model_validate(deal)


CREATE_FUNCTIONS: Dict[EntityType, Callable[[Session, Dict[str, Any]], BaseModel]] = {
    EntityType.CONTACTS: create_contact,
    EntityType.DEALS: create_deal,
}


def get_create_function(entity_type: EntityType) -> Callable[[Session, Dict[str, Any]], BaseModel]:
    return CREATE_FUNCTIONS[entity_type]


def build_create_fn(
    entity_type: EntityType,
    session_factory: sessionmaker
) -> Callable[[Dict[str, Any]], BaseModel]:
    """Bind a create function to its own session per record.

    Each record commits on its own, so a rejected record never rolls back
    the ones before it.
    """
    create = get_create_function(entity_type)

    def create_fn(record: Dict[str, Any]) -> BaseModel:
        with session_factory() as db:
            return create(db, record)

    return create_fn


def list_contacts(db: Session) -> List[Contact]:
    return list(db.execute(select(Contact).order_by(Contact.id)).scalars().all())


def list_deals(db: Session) -> List[Deal]:
    return list(db.execute(select(Deal).order_by(Deal.id)).scalars().all())
