# taskboard/models/user.py
import sqlalchemy as sa
import uuid
from taskboard.utils.database import Base

class User(Base):
    __tablename__ = "users"
    id = sa.Column(sa.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # exact-match lookups, no case folding
    email = sa.Column(sa.String(255), unique=True, nullable=False, index=True)
    password_hash = sa.Column(sa.String(512), nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now())
