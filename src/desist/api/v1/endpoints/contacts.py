"""
Emergency Contact Endpoints

CRUD over the emergency contact book. The book keeps exactly one
primary contact whenever it is non-empty.

PRIVACY: Phone numbers are returned to the device owner only and are
never logged.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from desist.api.dependencies import get_core
from desist.domain.models.emergency_contact import EmergencyContact
from desist.services.coordination.coordination_core import CoordinationCore

router = APIRouter()


# Request/Response Models

class ContactResponse(BaseModel):
    id: str
    name: str
    phone: str
    relationship: str
    is_primary: bool

    @classmethod
    def from_contact(cls, contact: EmergencyContact) -> "ContactResponse":
        return cls(**contact.to_dict())


class CreateContactRequest(BaseModel):
    """Request to add an emergency contact."""

    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=3, max_length=32)
    relationship: str = Field(default="", max_length=50)
    is_primary: bool = False


class UpdateContactRequest(BaseModel):
    """Partial contact update."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=3, max_length=32)
    relationship: Optional[str] = Field(default=None, max_length=50)
    is_primary: Optional[bool] = None


@router.get(
    "",
    response_model=list[ContactResponse],
    summary="List emergency contacts",
)
async def list_contacts(
    core: CoordinationCore = Depends(get_core),
) -> list[ContactResponse]:
    return [ContactResponse.from_contact(c) for c in core.list_contacts()]


@router.post(
    "",
    response_model=ContactResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an emergency contact",
)
async def create_contact(
    request: CreateContactRequest,
    core: CoordinationCore = Depends(get_core),
) -> ContactResponse:
    """The first contact, or one added with is_primary, becomes primary."""
    contact = core.add_contact(
        name=request.name,
        phone=request.phone,
        relationship=request.relationship,
        is_primary=request.is_primary,
    )
    return ContactResponse.from_contact(contact)


@router.patch(
    "/{contact_id}",
    response_model=ContactResponse,
    summary="Update an emergency contact",
    responses={404: {"description": "Contact not found"}},
)
async def update_contact(
    contact_id: str,
    request: UpdateContactRequest,
    core: CoordinationCore = Depends(get_core),
) -> ContactResponse:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    try:
        contact = core.update_contact(contact_id, **changes)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return ContactResponse.from_contact(contact)


@router.delete(
    "/{contact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove an emergency contact",
    responses={404: {"description": "Contact not found"}},
)
async def delete_contact(
    contact_id: str,
    core: CoordinationCore = Depends(get_core),
) -> Response:
    """Removing the primary promotes the earliest remaining contact."""
    core.remove_contact(contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
