# taskboard/schemas.py
from typing import Optional

from pydantic import BaseModel


# ---------------------- AUTH ----------------------
# email/password stay optional so missing values reach the credential store
# and fail as InvalidInput rather than a framework validation error
class CredentialsIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


# ---------------------- TASKS ----------------------
class FileIn(BaseModel):
    data: str
    originalname: Optional[str] = None


class TaskCreate(BaseModel):
    title: Optional[str] = None
    status: Optional[str] = None
    dueDate: Optional[str] = None
    file: Optional[FileIn] = None


class TaskUpdate(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    dueDate: Optional[str] = None
    file: Optional[FileIn] = None

    def changes(self) -> dict:
        """Only the task fields the client actually sent; explicit nulls included."""
        return self.model_dump(include={"title", "status", "dueDate"}, exclude_unset=True)
