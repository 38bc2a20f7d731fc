"""Email verification endpoints built on one-time links."""

from __future__ import annotations

import datetime as dt
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from onetime_link.core.config import settings
from onetime_link.core.deps import get_email_sender, get_link_service
from onetime_link.core.exceptions import ConflictError, InvalidOrExpiredTokenError
from onetime_link.db.session import get_db
from onetime_link.schemas.verification import (
    SendVerificationRequest,
    SendVerificationResponse,
    TokenCheckResponse,
    UserCreate,
    UserOut,
    VerificationResponse,
)
from onetime_link.services.email import EmailSender, build_verification_email
from onetime_link.services.links import LinkService
from onetime_link.services.users import create_user, find_user_by_email, mark_user_verified

router = APIRouter()
logger = logging.getLogger(__name__)

EMAIL_VERIFICATION_PURPOSE = "email-verification"


def _verify_base_url() -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/email-verification/verify"


@router.post("/users", response_model=UserOut)
def register_user(payload: UserCreate, db: Session = Depends(get_db)) -> UserOut:
    if find_user_by_email(db, payload.email):
        raise ConflictError("email_exists", details={"email": payload.email})
    return UserOut.model_validate(create_user(db, payload))


@router.post("/send", response_model=SendVerificationResponse)
def send_verification(
    payload: SendVerificationRequest,
    db: Session = Depends(get_db),
    links: LinkService = Depends(get_link_service),
    sender: EmailSender = Depends(get_email_sender),
) -> SendVerificationResponse:
    user = find_user_by_email(db, payload.email)
    if not user:
        # Same answer as for a real account so addresses cannot be enumerated.
        logger.warning("Verification requested for unknown email: %s", payload.email)
        return SendVerificationResponse(message="verification_sent")
    if user.is_verified:
        raise ConflictError("email_already_verified")

    expire_days = settings.VERIFICATION_LINK_EXPIRE_DAYS
    link = links.issue(
        _verify_base_url(),
        str(user.id),
        EMAIL_VERIFICATION_PURPOSE,
        dt.timedelta(days=expire_days),
    )
    subject, body, html_body = build_verification_email(user.name, link, expire_days)
    if not sender.send(user.email, subject, body, html_body=html_body):
        logger.warning("Verification email not delivered: %s", user.email)

    if settings.ENV == "development":
        return SendVerificationResponse(message="verification_sent", verification_link=link)
    return SendVerificationResponse(message="verification_sent")


@router.get("/verify/{token}", response_model=VerificationResponse)
def verify_email(
    token: str,
    db: Session = Depends(get_db),
    links: LinkService = Depends(get_link_service),
) -> VerificationResponse:
    link = links.consume_for_purpose(token, EMAIL_VERIFICATION_PURPOSE)
    if link is None:
        raise InvalidOrExpiredTokenError()

    user = mark_user_verified(db, link.subject_id)
    if not user:
        raise InvalidOrExpiredTokenError()
    return VerificationResponse(message="email_verified", user=UserOut.model_validate(user))


@router.get("/check/{token}", response_model=TokenCheckResponse)
def check_token(token: str, links: LinkService = Depends(get_link_service)) -> TokenCheckResponse:
    return TokenCheckResponse(valid=links.exists(token))
