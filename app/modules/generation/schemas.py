from pydantic import BaseModel
from typing import List, Optional


class GeneratedFile(BaseModel):
    path: str
    content: str


class GenerationSession(BaseModel):
    id: str
    title: Optional[str] = None
    files: List[GeneratedFile] = []
