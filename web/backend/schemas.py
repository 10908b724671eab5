from typing import Optional

from pydantic import BaseModel


class AuthResponse(BaseModel):
    token: str
    regionCode: str

    model_config = {"frozen": True}


class StreamResponse(BaseModel):
    streamUri: str

    model_config = {"frozen": True}


class ErrorResponse(BaseModel):
    error: str
    status: Optional[int] = None  # Upstream HTTP status, when there was one
    code: Optional[str] = None  # "upstream" | "bad_response" | "not_found"
