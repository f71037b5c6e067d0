from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from periodicos.models.search import ExportFormat, SearchMetadata


class ExportFileResult(BaseModel):
    """Outcome of writing one bibliographic file"""
    model_config = ConfigDict(frozen=True)

    file_path: str
    article_count: int = Field(..., ge=0)
    file_size_bytes: int = Field(..., ge=0)
    created_at: datetime


class ExportResult(BaseModel):
    """Outcome of a search-and-export request"""
    model_config = ConfigDict(frozen=True)

    export_completed: Literal[True] = True
    output_directory: str
    files_created: List[str]
    articles_exported: int = Field(..., ge=0)
    format: ExportFormat
    search_metadata: SearchMetadata
