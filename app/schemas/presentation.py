"""
app/schemas/presentation.py

Purpose: Slide content schemas

- One normalized slide (title, summary, bullets, escaped HTML body)
- Cascade output handed to the renderer
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class Slide(BaseModel):
    page_number: int
    title: str
    summary: str
    bullets: List[str] = Field(default_factory=list)
    content: str = Field(..., description="Escaped HTML built from summary and bullets")
    image: Optional[str] = Field(None, description="data: URI or remote image URL")


class GeneratedContent(BaseModel):
    """
    Result of the content cascade: normalized topic plus exactly page_count slides.
    """
    topic: str
    language: str
    slides: List[Slide]
    used_fallback: bool = False
