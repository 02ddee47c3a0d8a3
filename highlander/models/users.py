from datetime import datetime

from sqlmodel import Field, SQLModel


class UserCreate(SQLModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=254)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    is_admin: bool = False


class UserRead(SQLModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    is_admin: bool
    created_at: datetime
