"""
Dispatch error taxonomy

Every error raised on the dispatch path carries the HTTP status, a short
error title, a human message and a hint, and renders into the JSON envelope
returned to external callers.
"""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class DispatchError(Exception):
    """Base class for errors returned to dispatch API callers"""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "Request failed"
    hint: str = "Check the error message for details"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        error: Optional[str] = None,
        hint: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.error = error or self.error
        self.message = message or self.error
        self.hint = hint or self.hint
        self.status_code = status_code or self.status_code
        self.error_code = self.status_code if error_code is None else error_code
        self.context = context or {}
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "error_code": self.error_code,
            "hint": self.hint,
        }
        if self.context:
            envelope["context"] = self.context
        return envelope


class AuthenticationError(DispatchError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Invalid or expired token"
    hint = "Include token via X-Prompt-Token header or Authorization: Bearer <token>"
    challenge = "Bearer"


class BasicAuthenticationError(AuthenticationError):
    error = "Unauthorized"
    hint = "Send the integration API user and password via Authorization: Basic"
    challenge = 'Basic realm="integrations"'


class ToolNotFoundError(DispatchError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Tool not found"
    hint = "List available tools via GET /api/mcp/tools"


class ConfigurationError(DispatchError):
    """Missing config id, disabled tool, inactive or foreign configuration"""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid configuration"
    hint = "Check the integration configuration for this organisation"


class CredentialUnavailableError(DispatchError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Credentials not available"
    hint = "Re-configure the integration with valid credentials"


class CredentialDecryptionError(CredentialUnavailableError):
    """Stored ciphertext exists but cannot be decrypted or decoded"""

    hint = "Stored credentials could not be decrypted - re-enter the credentials for this integration"


class ConnectorExecutionError(DispatchError):
    """The connector's underlying call failed"""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "Tool execution failed"

    CLIENT = "client_error"
    SERVER = "server_error"
    TRANSPORT = "transport_error"
    UNKNOWN = "unknown_error"

    def __init__(self, message: str, *, kind: str = UNKNOWN, cause: Optional[BaseException] = None, **kwargs):
        self.kind = kind
        self.cause = cause
        super().__init__(message, **kwargs)


class RegistryError(Exception):
    """Invalid connector registration (raised at startup)"""


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    """Render any escaped dispatch error as the JSON envelope"""
    headers = {"WWW-Authenticate": exc.challenge} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope(), headers=headers)


# Paths whose callers always get the dispatch envelope, even for malformed bodies
ENVELOPE_PATH_PREFIXES = ("/api/mcp", "/api/integrations")


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """400 envelope for malformed dispatch requests, FastAPI's default 422 everywhere else"""
    if not request.url.path.startswith(ENVELOPE_PATH_PREFIXES):
        return await request_validation_exception_handler(request, exc)

    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append({"field": location, "message": err.get("msg", "invalid value")})

    error = DispatchError(
        "; ".join(f"{p['field']}: {p['message']}" if p["field"] else p["message"] for p in problems) or "Malformed request",
        error="Invalid request",
        hint="Send a JSON object with tool_id or tool.name, and parameters as an object",
        context={"errors": problems},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_envelope())
