# taskboard/models/task.py
import uuid

import sqlalchemy as sa
from sqlalchemy.orm import relationship

from taskboard.utils.database import Base

TASK_STATUSES = ("pending", "done")


class Task(Base):
    __tablename__ = "tasks"
    id = sa.Column(sa.String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    title = sa.Column(sa.Text, nullable=False)
    status = sa.Column(sa.String(16), nullable=False, default="pending")
    due_date = sa.Column(sa.String(64), nullable=True)
    # insertion order for list()
    position = sa.Column(sa.Integer, nullable=False, index=True)
    attachments = relationship(
        "Attachment",
        back_populates="task",
        order_by="Attachment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "dueDate": self.due_date,
            "attachments": [a.to_dict() for a in self.attachments],
        }


class Attachment(Base):
    __tablename__ = "attachments"
    id = sa.Column(sa.Integer, primary_key=True, autoincrement=True)
    task_id = sa.Column(sa.String(32), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = sa.Column(sa.String(512), unique=True, nullable=False)
    originalname = sa.Column(sa.String(512), nullable=False)
    task = relationship("Task", back_populates="attachments")

    def to_dict(self) -> dict:
        return {"filename": self.filename, "originalname": self.originalname}
