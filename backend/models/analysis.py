from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

VerdictType = Literal["Accurate", "Misleading", "False", "Unverified"]


class Source(BaseModel):
    title: str
    url: str
    publisher: Optional[str] = None


class AnalysisResult(BaseModel):
    """The single result shape the client renders.

    `kind` is set by the producer so the client never has to guess the
    variant from which optional fields happen to be present.
    """
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["fact_check"] = "fact_check"
    main_claim: str = Field(alias="mainClaim")
    verdict: VerdictType = "Unverified"
    explanation: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, allow_inf_nan=False)
    sources: List[Source] = Field(default_factory=list)
    model: Optional[str] = None
    api_version: Optional[str] = Field(default=None, alias="apiVersion")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
