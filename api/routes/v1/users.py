"""
api/routes/v1/users.py -- Account endpoints: registration, verification, password reset.

Routes:
  POST /api/v1/users/register                          -- create an unverified account
  POST /api/v1/users/verify/{user_id}/{code}           -- consume the verification code
  POST /api/v1/users/forgotpassword                    -- issue a reset code (rate-limited)
  POST /api/v1/users/resetpassword/{user_id}/{code}    -- set a new password, revoke all sessions
  GET  /api/v1/users/me                                -- access-token snapshot (requires auth)

Security:
  [H2] POST /forgotpassword shares the login rate limit so reset mail cannot
       be used to flood an inbox.
  forgotpassword answers unknown emails with the same 200 as real ones.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import ForgotPasswordRequest, MeResponse, MessageResponse, RegisterRequest, ResetPasswordRequest
from api.responses import no_store, outcome_response
from auth.dependencies import get_current_claims
from auth.models import AccessTokenClaims
from auth.password_reset import PasswordResetFlow
from auth.verification import VerificationFlow

# Auth policy:
# - POST /users/register, /verify, /forgotpassword, /resetpassword: public
# - GET  /users/me: requires auth (get_current_claims)
router = APIRouter()


@router.post("/users/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and send its verification code. 409 if the email is taken."""
    verification: VerificationFlow = request.app.state.verification
    outcome = verification.register(body.first_name, body.last_name, body.email, body.password)
    return outcome_response(outcome, status_code=201)


@router.post("/users/verify/{user_id}/{code}", response_model=MessageResponse)
def verify_email(request: Request, user_id: str, code: str) -> JSONResponse:
    """Mark the account verified. Repeating a successful verification is a no-op 200."""
    verification: VerificationFlow = request.app.state.verification
    return outcome_response(verification.verify(user_id, code))


@router.post("/users/forgotpassword", response_model=MessageResponse)
@limiter.limit(login_rate_limit)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> JSONResponse:
    """Send a password reset code if the account exists and is verified."""
    password_reset: PasswordResetFlow = request.app.state.password_reset
    return outcome_response(password_reset.forgot_password(body.email))


@router.post("/users/resetpassword/{user_id}/{code}", response_model=MessageResponse)
def reset_password(request: Request, user_id: str, code: str, body: ResetPasswordRequest) -> JSONResponse:
    """Consume a reset code, set the new password, and revoke every session of the account."""
    password_reset: PasswordResetFlow = request.app.state.password_reset
    return no_store(outcome_response(password_reset.reset_password(user_id, code, body.password)))


@router.get("/users/me", response_model=MeResponse)
def me(claims: AccessTokenClaims = Depends(get_current_claims)) -> MeResponse:
    """Return the identity carried by the caller's access token."""
    return MeResponse.from_claims(claims)
