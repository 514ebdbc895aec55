from typing import Any, Optional

from pydantic import BaseModel

# --- Request models ---
# Required fields are typed Optional on purpose: the services check them and
# answer with a message naming every missing field.


class LookupRequest(BaseModel):
    """Schema for a term lookup event sent by the extension."""
    client_id: Optional[str] = None
    term_key: Optional[str] = None
    term_display: Optional[str] = None
    complexity_level: Optional[str] = None
    page_url: Optional[str] = None
    page_context: Optional[str] = None
    found: Optional[bool] = None

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "ext_3f9a2c",
                "term_key": "ebitda",
                "term_display": "EBITDA",
                "complexity_level": "simple",
                "page_url": "https://example.com/earnings",
                "page_context": "...adjusted EBITDA rose 12%...",
                "found": True
            }
        }


class FeedbackRequest(BaseModel):
    """Schema for receiving feedback from the extension."""
    client_id: Optional[str] = None
    term_key: Optional[str] = None
    feedback_type: Optional[str] = None  # 'thumbs_up', 'thumbs_down' or 'confused'
    complexity_level: Optional[str] = None
    comment: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "ext_3f9a2c",
                "term_key": "ebitda",
                "feedback_type": "confused",
                "complexity_level": "simple",
                "comment": "Still not sure what amortization means"
            }
        }


class RewriteRequest(BaseModel):
    """Schema for requesting an AI rewrite of an explanation."""
    client_id: Optional[str] = None
    term_key: Optional[str] = None
    term_display: Optional[str] = None
    original_explanation: Optional[str] = None
    complexity_level: Optional[str] = None
    user_context: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "ext_3f9a2c",
                "term_key": "ebitda",
                "term_display": "EBITDA",
                "original_explanation": "Earnings before interest, taxes, depreciation and amortization.",
                "complexity_level": "simple",
                "user_context": "I run a small bakery"
            }
        }


# --- Response envelope: {success, data} or {success, error} ---

def ok(data: Any) -> dict:
    return {"success": True, "data": data}


def fail(message: str) -> dict:
    return {"success": False, "error": message}
