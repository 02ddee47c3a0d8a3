from typing import Optional
from sqlmodel import SQLModel, Field


class Team(SQLModel, table=True):  # type: ignore[call-arg]
    """Static reference data: a Serie A club, seeded once."""

    __tablename__ = "teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    code: str = Field(unique=True, max_length=3, description="Three-letter code, e.g. 'JUV'")
