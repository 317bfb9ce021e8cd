"""Typed views of Slack Web API payloads."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SlackModel(BaseModel):
    """Base for models serialised with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)


class TokenBundle(SlackModel):
    """Result of an OAuth grant, refresh or legacy exchange."""

    access_token: str = Field(alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expires_in: int | None = Field(default=None, alias="expiresIn")
    team_id: str | None = Field(default=None, alias="teamId")
    team_name: str | None = Field(default=None, alias="teamName")
    authed_user_id: str | None = Field(default=None, alias="authedUserId")
    scope: str | None = None
    bot_user_id: str | None = Field(default=None, alias="botUserId")

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "TokenBundle":
        team = data.get("team") or {}
        authed_user = data.get("authed_user") or {}
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token") or None,
            expires_in=data.get("expires_in"),
            team_id=team.get("id"),
            team_name=team.get("name"),
            authed_user_id=authed_user.get("id"),
            scope=data.get("scope"),
            bot_user_id=data.get("bot_user_id"),
        )


class PostedMessage(SlackModel):
    ts: str
    channel: str


class Channel(SlackModel):
    id: str
    name: str
    is_private: bool = Field(default=False, alias="isPrivate")


class ChannelInfo(SlackModel):
    id: str
    name: str
    topic: str = ""
    purpose: str = ""
    is_private: bool = Field(default=False, alias="isPrivate")
    member_count: int | None = Field(default=None, alias="memberCount")
    created: datetime | None = None
    creator: str | None = None

    @classmethod
    def from_response(cls, channel: dict[str, Any]) -> "ChannelInfo":
        created = channel.get("created")
        return cls(
            id=channel["id"],
            name=channel.get("name", ""),
            topic=(channel.get("topic") or {}).get("value", ""),
            purpose=(channel.get("purpose") or {}).get("value", ""),
            is_private=bool(channel.get("is_private")),
            member_count=channel.get("num_members"),
            created=datetime.fromtimestamp(created, UTC) if created else None,
            creator=channel.get("creator"),
        )


class SlackUser(SlackModel):
    id: str
    name: str
    username: str | None = None
    avatar: str | None = None
    is_bot: bool = Field(default=False, alias="isBot")

    @classmethod
    def from_response(cls, user: dict[str, Any]) -> "SlackUser":
        profile = user.get("profile") or {}
        return cls(
            id=user["id"],
            name=user.get("real_name") or user.get("name") or "Unknown User",
            username=user.get("name"),
            avatar=profile.get("image_72") or profile.get("image_48"),
            is_bot=bool(user.get("is_bot")),
        )


class MembersPage(SlackModel):
    members: list[SlackUser]
    has_more: bool = Field(default=False, alias="hasMore")
    next_cursor: str | None = Field(default=None, alias="nextCursor")


class UserDetails(SlackModel):
    name: str
    avatar: str | None = None
    is_bot: bool = Field(default=False, alias="isBot")


class HistoryMessage(SlackModel):
    id: str
    text: str = ""
    user: str | None = None
    user_details: UserDetails | None = Field(default=None, alias="userDetails")
    is_bot: bool = Field(default=False, alias="isBot")
    bot_name: str | None = Field(default=None, alias="botName")
    timestamp: str
    posted_at: datetime | None = Field(default=None, alias="postedAt")
    reactions: list[dict[str, Any]] = Field(default_factory=list)
    thread_ts: str | None = Field(default=None, alias="threadTs")
    reply_count: int = Field(default=0, alias="replyCount")
    attachments: list[dict[str, Any]] = Field(default_factory=list)


class HistoryPage(SlackModel):
    messages: list[HistoryMessage]
    has_more: bool = Field(default=False, alias="hasMore")
    next_cursor: str | None = Field(default=None, alias="nextCursor")
