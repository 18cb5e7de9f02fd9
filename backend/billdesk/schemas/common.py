from pydantic import BaseModel, Field


class Pagination(BaseModel):
    page: int
    current: int
    limit: int
    pages: int
    total: int


class MessageResponse(BaseModel):
    message: str


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
