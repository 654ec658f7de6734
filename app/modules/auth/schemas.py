from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional


class CurrentUserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = {}
    authorization_mode: str = Field(serialization_alias="authorizationMode")
    is_super_user: bool = Field(default=False, serialization_alias="isSuperUser")
