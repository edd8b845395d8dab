"""Address book API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from auth import Session as AuthSession, verify_token
from database import get_db
from dependencies import get_address_service
from schemas import AddressCreate, AddressResponse, AddressUpdate
from services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["addresses"])


@router.get("", response_model=List[AddressResponse])
async def list_addresses(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    addresses: AddressService = Depends(get_address_service)
):
    return addresses.list_addresses(db, session.user_id)


@router.post("", response_model=List[AddressResponse], status_code=201)
async def add_address(
    request: AddressCreate,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    addresses: AddressService = Depends(get_address_service)
):
    """Add an address and return the whole address book."""
    return addresses.add_address(db, session.user_id, request)


@router.put("/{address_id}", response_model=List[AddressResponse])
async def update_address(
    address_id: str,
    request: AddressUpdate,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    addresses: AddressService = Depends(get_address_service)
):
    return addresses.update_address(db, session.user_id, address_id, request)


@router.delete("/{address_id}", response_model=List[AddressResponse])
async def delete_address(
    address_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    addresses: AddressService = Depends(get_address_service)
):
    return addresses.delete_address(db, session.user_id, address_id)
