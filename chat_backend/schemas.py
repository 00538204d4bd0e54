import json
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RequestBody(BaseModel):
    """Request bodies accept camelCase keys as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserCreate(RequestBody):
    name: str = ""
    email: str = ""
    password: str = ""
    picture: Optional[str] = None


class LoginRequest(RequestBody):
    email: str = ""
    password: str = ""


class PasswordChange(RequestBody):
    old_password: str
    new_password: str


class AccessChatRequest(RequestBody):
    user_id: Optional[int] = None


class GroupCreate(RequestBody):
    name: str = ""
    users: List[int] = Field(default_factory=list)

    @field_validator("users", mode="before")
    @classmethod
    def decode_users(cls, value):
        # clients send the id list JSON-encoded inside the body
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                raise ValueError("users must be a JSON-encoded list of user ids")
        return value


class GroupRename(RequestBody):
    chat_id: int
    chat_name: str = ""


class GroupMemberChange(RequestBody):
    chat_id: int
    user_id: int


class MessageCreate(RequestBody):
    content: str = ""
    chat_id: Optional[int] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    picture: str


class AuthOut(UserOut):
    token: str


class LatestMessageOut(BaseModel):
    id: int
    sender: UserOut
    content: str
    created_at: datetime


class DirectChatOut(BaseModel):
    kind: Literal["direct"] = "direct"
    id: int
    is_group_chat: Literal[False] = False
    users: List[UserOut]
    latest_message: Optional[LatestMessageOut] = None
    created_at: datetime
    updated_at: datetime


class GroupChatOut(BaseModel):
    kind: Literal["group"] = "group"
    id: int
    is_group_chat: Literal[True] = True
    chat_name: str
    group_admin: Optional[UserOut] = None
    users: List[UserOut]
    latest_message: Optional[LatestMessageOut] = None
    created_at: datetime
    updated_at: datetime


ChatOut = Annotated[Union[DirectChatOut, GroupChatOut], Field(discriminator="kind")]


class MessageChatOut(BaseModel):
    """The owning chat as embedded in a message; enough for the relay to fan out."""

    id: int
    is_group_chat: bool
    chat_name: Optional[str] = None
    users: List[UserOut]


class MessageOut(BaseModel):
    id: int
    sender: UserOut
    chat: MessageChatOut
    content: str
    created_at: datetime
