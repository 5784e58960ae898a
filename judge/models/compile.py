from pydantic import BaseModel, Field


class CompileRequest(BaseModel):
    code: str = Field(..., min_length=1)
    lang: str = Field(..., min_length=1)
    input: str = ""


class CompileResponse(BaseModel):
    success: bool
    output: str
    stderr: str = ""
    language: str
    execution_time_ms: int
    timestamp: str
    error: str | None = None


class LanguageInfo(BaseModel):
    id: str
    name: str
    aliases: list[str]
    compiled: bool
    available: bool


class LanguagesResponse(BaseModel):
    languages: list[LanguageInfo]
    max_concurrency: int
    active: int
    queued: int
