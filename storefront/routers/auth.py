"""Authentication API router."""
import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.auth import (
    Identity,
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)
from storefront.config import AUTH_COOKIE_NAME, COOKIE_SECURE, TOKEN_EXPIRE_MINUTES
from storefront.database import get_db, transaction
from storefront.dependencies import get_cart_service
from storefront.errors import Unauthorized, ValidationError
from storefront.models import Role, User
from storefront.monitoring import auth_attempts_counter, auth_failures_counter
from storefront.schemas import (
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from storefront.services.cart_service import CartService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create a customer account. Does not log the new user in."""
    email = request.email.lower()
    if db.query(User).filter(User.email == email).first() is not None:
        raise ValidationError("Email already exists")

    user = User(
        email=email,
        name=request.name,
        password=hash_password(request.password),
        role=Role.CUSTOMER.value
    )
    try:
        with transaction(db):
            db.add(user)
    except IntegrityError:
        raise ValidationError("Email already exists")

    logger.info("User registered", extra={"user_id": user.id})

    return {
        "message": "Account created successfully. Please log in.",
        "user": user
    }


@router.post("/login", response_model=LoginResponse)
def login(
    request: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    cart_service: CartService = Depends(get_cart_service)
):
    """
    Verify credentials and start a session.

    The token is set as an HTTP-only cookie and also returned in the body
    for bearer clients. Guest cart lines sent with the request are merged
    into the user's cart exactly once, here.
    """
    auth_attempts_counter.add(1, {"type": "login"})

    user = db.query(User).filter(User.email == request.email.lower()).first()
    if user is None or not verify_password(request.password, user.password):
        auth_failures_counter.add(1, {"reason": "invalid_credentials"})
        logger.warning("Login failed: Invalid credentials")
        raise Unauthorized("Invalid credentials")

    identity = Identity(id=user.id, email=user.email, role=user.role)
    token = create_access_token(identity)

    merged_items = 0
    if request.guest_cart:
        merged_items = cart_service.merge_cart(db, user.id, request.guest_cart)

    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/"
    )

    logger.info("User logged in successfully", extra={
        "user_id": user.id,
        "merged_items": merged_items
    })

    return {
        "message": "Logged in",
        "user": user,
        "token": token,
        "merged_items": merged_items
    }


@router.post("/logout")
def logout(response: Response):
    """End the session by clearing the token cookie."""
    response.delete_cookie(AUTH_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    """Return the identity behind the current session."""
    user = db.get(User, identity.id)
    if user is None:
        raise Unauthorized("Access denied")
    return {"user": user}
