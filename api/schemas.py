from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class FilterCriteriaModel(BaseModel):
    agent: str = "ALL"
    merchant: str = "ALL"
    exclude_agent_tokens: Union[str, List[str]] = Field(default_factory=list)
    search_text: str = ""
    selected_months: List[str] = Field(default_factory=list)
    last_n_months: Optional[int] = None
    top_n: Optional[int] = None
    bin_step: Optional[float] = None


class IngestRequest(BaseModel):
    records: List[Dict[str, Any]] = Field(default_factory=list)
    batch_month: str = ""
    mode: Literal["append", "replace"] = "append"


class IngestResponse(BaseModel):
    dataset_version: int
    ingested: int
    dropped: int
    total_rows: int
    months: List[str]
    batch_month: str = ""


class CompareRequest(BaseModel):
    filters: FilterCriteriaModel = Field(default_factory=FilterCriteriaModel)
    month_a: Optional[str] = None
    month_b: Optional[str] = None
    join_key: Literal["agent+merchant", "merchant"] = "agent+merchant"
