"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/auth/register        -- create account; 201 {id, username, ...}
  POST /api/auth/login           -- password login; 200 {user, token, refreshToken, expiresIn}
  POST /api/auth/refresh-token   -- exchange refresh token; 200 {token, refreshToken}
  POST /api/auth/logout          -- revoke the given refresh token if valid; always 200
  POST /api/auth/reset-password  -- set a new password from a reset token
  GET  /api/auth/me              -- identity behind the bearer token (requires auth)

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  validate_credentials() provides timing equalization -- login goes through
  LoginUserHandler, never an inline lookup + verify.
  Login responses (success and failure) carry Cache-Control: no-store.
  Unknown username and wrong password return the same 401 body.
"""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_key, login_limit
from api.models import (
    CredentialsRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshResponse,
    ResetPasswordRequest,
    TokenRequest,
    UserResponse,
)
from auth.commands import (
    LoginUserCommand,
    LoginUserHandler,
    LogoutUserCommand,
    LogoutUserHandler,
    RefreshTokenCommand,
    RefreshTokenHandler,
    RegisterUserCommand,
    RegisterUserHandler,
    ResetPasswordCommand,
    ResetPasswordHandler,
)
from auth.dependencies import require_access_token
from auth.models import AccessClaims
from core.errors import InvalidCredentialsError

# Auth policy:
# - POST /api/auth/register:        public
# - POST /api/auth/login:           public, rate limited
# - POST /api/auth/refresh-token:   public -- the refresh token is the credential
# - POST /api/auth/logout:          public -- the refresh token is the credential
# - POST /api/auth/reset-password:  public -- the reset token is the credential
# - GET  /api/auth/me:              requires access token
router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: CredentialsRequest) -> UserResponse:
    """Create an account. Violated format/strength rules are reported together (400)."""
    state = request.app.state
    command = RegisterUserCommand.create(body.username, body.password)
    user = RegisterUserHandler(state.user_store, state.settings.bcrypt_rounds).handle(command)
    return UserResponse.from_public(user)


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_limit, key_func=login_key)  # brute-force mitigation; must sit below @router
def login(request: Request, response: Response, body: CredentialsRequest):
    """Authenticate with username and password; return an access/refresh token pair.

    Returns the same generic error for wrong username and wrong password
    ("bad_credentials") to avoid leaking username existence information.
    """
    state = request.app.state
    handler = LoginUserHandler(state.auth_service, state.user_store, state.settings.bcrypt_rounds)
    try:
        result = handler.handle(LoginUserCommand(username=body.username, password=body.password))
    except InvalidCredentialsError as exc:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": exc.code, "message": exc.message}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        user=UserResponse.from_public(result.user),
        token=result.token,
        refresh_token=result.refresh_token,
        expires_in=result.expires_in,
    )


@router.post("/auth/refresh-token", response_model=RefreshResponse)
def refresh_token(request: Request, body: TokenRequest) -> RefreshResponse:
    """Issue a new access token. The presented refresh token is rotated out."""
    handler = RefreshTokenHandler(request.app.state.auth_service)
    result = handler.handle(RefreshTokenCommand(token=body.token or ""))
    return RefreshResponse(token=result.token, refresh_token=result.refresh_token)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, body: TokenRequest) -> MessageResponse:
    """End the session. A valid refresh token in the body is revoked; anything else is ignored."""
    LogoutUserHandler(request.app.state.auth_service).handle(LogoutUserCommand(token=body.token))
    return MessageResponse(message="Logout successful")


@router.post("/auth/reset-password", response_model=UserResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> UserResponse:
    """Set a new password using a reset token issued out of band (see main.py reset-token).

    Every refresh token the user holds stops working afterwards.
    """
    state = request.app.state
    handler = ResetPasswordHandler(state.auth_service, state.user_store, state.settings.bcrypt_rounds)
    user = handler.handle(ResetPasswordCommand(token=body.token, new_password=body.new_password))
    return UserResponse.from_public(user)


@router.get("/auth/me", response_model=MeResponse)
def me(claims: AccessClaims = Depends(require_access_token)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(id=claims.user_id, username=claims.username)
