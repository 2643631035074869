"""
Pydantic models for API request/response validation.
Auto-generates OpenAPI documentation.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class RootResponse(BaseModel):
    """Service banner response."""
    message: str
    status: str
    timestamp: str
    version: str


class HelloResponse(BaseModel):
    message: str
    status: str
    timestamp: str


class HealthResponse(BaseModel):
    """Liveness response."""
    status: str
    uptime: float = Field(..., description="Seconds since process start")
    timestamp: str


class TableInfo(BaseModel):
    """One row of information_schema.tables."""
    table_catalog: Optional[str] = None
    table_schema: Optional[str] = None
    table_name: str
    table_type: Optional[str] = None


class TablesResponse(BaseModel):
    tables: List[TableInfo]


class DiagnosticsResponse(BaseModel):
    """Attachment diagnostics; failed probes are null with a message in errors."""
    database_list: Optional[List[Dict[str, Any]]] = None
    current_database: Optional[str] = None
    schemas: Optional[List[Dict[str, Any]]] = None
    table_count: Optional[int] = None
    errors: Dict[str, str] = Field(default_factory=dict)


class QueryRequest(BaseModel):
    """Ad-hoc query body (documentation only; the body is parsed leniently)."""
    sql: str = Field(..., description="A single SELECT statement")


class RowsResponse(BaseModel):
    """Query result rows, untransformed."""
    rows: List[Dict[str, Any]]


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    message: Optional[str] = None
    timestamp: Optional[str] = None
