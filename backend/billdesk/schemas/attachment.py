import uuid
from datetime import datetime

from pydantic import BaseModel


class AttachmentRead(BaseModel):
    file_id: str
    file_name: str
    original_name: str
    file_type: str
    mime_type: str
    file_size: int
    file_url: str
    uploaded_by_id: uuid.UUID | None = None
    is_public: bool
    download_count: int
    uploaded_at: datetime

    model_config = {"from_attributes": True}
