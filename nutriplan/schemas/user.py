from pydantic import BaseModel
from typing import Optional

class AuthenticatedUser(BaseModel):
    """Identity resolved from a Supabase access token."""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
