"""Account API endpoints: registration and login."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from auth import (
    CustomerManager,
    AdminManager,
    CustomerValidationError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError
)
from orders import PackageNotFoundError
from ..dependencies import get_customer_manager, get_admin_manager

# Create router
router = APIRouter(
    tags=["Accounts"]
)

class RegisterRequest(BaseModel):
    """Request model for customer registration."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    package_id: Optional[int] = None

class LoginRequest(BaseModel):
    """Request model for customer and admin login."""
    email: Optional[str] = None
    password: Optional[str] = None

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    manager: CustomerManager = Depends(get_customer_manager)
):
    """Register a customer, optionally purchasing a package."""
    try:
        user = await manager.register(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            password=request.password,
            package_id=request.package_id
        )
    except CustomerValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    except PackageNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    order = user.pop('order', None)
    response = {"success": True, "user": user}
    if order is not None:
        response["order"] = order
    return response

@router.post("/login")
async def login(
    request: LoginRequest,
    manager: CustomerManager = Depends(get_customer_manager)
):
    """Log a customer in."""
    try:
        user = await manager.login(request.email, request.password)
    except CustomerValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    return {"success": True, "user": user}

@router.post("/admin/login")
async def admin_login(
    request: LoginRequest,
    manager: AdminManager = Depends(get_admin_manager)
):
    """Log an admin in."""
    try:
        admin = await manager.login(request.email, request.password)
    except CustomerValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    return {"success": True, "admin": admin}
