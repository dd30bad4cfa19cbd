from pydantic import BaseModel, Field


class DeleteResponse(BaseModel):
    message: str = "Deleted successfully"
    rowCount: int = Field(..., description="Number of rows removed")
