"""Slack Web API client.

Every call goes through :meth:`SlackGateway._call`, which turns transport
failures, HTTP 429 and ``ok: false`` payloads into the exception hierarchy in
:mod:`threadly.exceptions`. Token values are never logged.
"""

import asyncio
import urllib.parse
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from threadly.config.slack import SlackSettings
from threadly.exceptions import (
    ChannelJoinError,
    InsufficientScopeError,
    InvalidCodeError,
    PlatformRejectedError,
    RateLimitedError,
    RefreshRejectedError,
    ThreadlyError,
    TransportError,
)
from threadly.slack import constants
from threadly.slack.models import (
    Channel,
    ChannelInfo,
    HistoryMessage,
    HistoryPage,
    MembersPage,
    PostedMessage,
    SlackUser,
    TokenBundle,
    UserDetails,
)


logger = structlog.get_logger(__name__)


def _split_scopes(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [scope.strip() for scope in str(value).split(",") if scope.strip()]


class SlackGateway:
    """Slack Web API gateway.

    Supports connection pooling by reusing one httpx.AsyncClient. A client
    passed in by the caller is not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        settings: SlackSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or SlackSettings()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, method: str) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}/{method}"

    async def _call(
        self,
        method: str,
        *,
        token: str | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        http_method: str = "POST",
    ) -> dict[str, Any]:
        """Call a Web API method and return the decoded payload.

        Raises:
            TransportError: Timeout, connection failure, 5xx or non-JSON body
            RateLimitedError: HTTP 429
            InsufficientScopeError: ``missing_scope``
            PlatformRejectedError: Any other ``ok: false`` answer
        """
        headers = {"Cache-Control": "no-cache, no-store"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(
                http_method,
                self._url(method),
                params=params,
                data=data,
                json=json,
                headers=headers,
                timeout=self.settings.request_timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("slack_api_timeout", method=method)
            raise TransportError(
                f"Slack API {method} timed out after {self.settings.request_timeout}s",
                method=method,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("slack_api_transport_error", method=method, error=str(e))
            raise TransportError(
                f"Could not reach Slack API {method}: {e}", method=method
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning("slack_api_rate_limited", method=method, retry_after=retry_after)
            raise RateLimitedError(
                method=method,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.status_code >= 500:
            raise TransportError(
                f"Slack API {method} returned HTTP {response.status_code}",
                method=method,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(
                f"Slack API {method} returned a non-JSON response", method=method
            ) from e

        if not isinstance(payload, dict):
            raise TransportError(
                f"Slack API {method} returned an unexpected payload", method=method
            )

        if not payload.get("ok"):
            error = str(payload.get("error") or "unknown_error")
            logger.info("slack_api_error", method=method, error=error)
            if error == constants.ERROR_MISSING_SCOPE:
                raise InsufficientScopeError(
                    needed=_split_scopes(payload.get("needed")),
                    provided=_split_scopes(payload.get("provided")),
                )
            raise PlatformRejectedError(error, method=method)

        return payload

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def build_authorization_url(self, state: str | None = None) -> str:
        """Slack authorize URL requesting the configured bot and user scopes."""
        query = {
            "client_id": self.settings.client_id,
            "scope": ",".join(self.settings.bot_scopes),
            "user_scope": ",".join(self.settings.user_scopes),
            "redirect_uri": self.settings.redirect_uri,
        }
        if state:
            query["state"] = state
        return f"{self.settings.authorize_url}?{urllib.parse.urlencode(query)}"

    def _client_credentials(self) -> dict[str, str]:
        return {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
        }

    async def exchange_code(self, code: str) -> TokenBundle:
        """Exchange an OAuth authorization code for a token bundle.

        Raises:
            InvalidCodeError: Code rejected, or the response lacks the access
                token, team id/name or authed user id
        """
        if not code or not code.strip():
            raise InvalidCodeError("Invalid authorization code provided")

        try:
            payload = await self._call(
                constants.OAUTH_ACCESS,
                data={
                    **self._client_credentials(),
                    "code": code.strip(),
                    "redirect_uri": self.settings.redirect_uri,
                },
            )
        except RateLimitedError:
            raise
        except PlatformRejectedError as e:
            raise InvalidCodeError(
                f"Slack rejected the authorization code: {e.platform_error}",
                platform_error=e.platform_error,
            ) from e

        bundle = TokenBundle.from_response(payload)
        if not bundle.access_token:
            raise InvalidCodeError("No access token received from Slack API")
        if not bundle.team_id or not bundle.team_name:
            raise InvalidCodeError("No team information received from Slack API")
        if not bundle.authed_user_id:
            raise InvalidCodeError("No user information received from Slack API")

        logger.info(
            "slack_code_exchanged",
            team_id=bundle.team_id,
            has_refresh_token=bundle.refresh_token is not None,
            expires_in=bundle.expires_in,
        )
        return bundle

    async def refresh_token(self, refresh_token: str) -> TokenBundle:
        """Redeem a refresh token for a new access/refresh pair.

        Raises:
            RefreshRejectedError: Slack refused the refresh token
        """
        try:
            payload = await self._call(
                constants.OAUTH_ACCESS,
                data={
                    **self._client_credentials(),
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        except RateLimitedError:
            raise
        except PlatformRejectedError as e:
            raise RefreshRejectedError(
                f"Slack rejected the refresh token ({e.platform_error}). "
                "Reconnect Slack to continue.",
                platform_error=e.platform_error,
            ) from e

        bundle = TokenBundle.from_response(payload)
        if not bundle.access_token:
            raise RefreshRejectedError(
                "Slack returned no access token for the refresh request",
                platform_error="missing_access_token",
            )
        return bundle

    async def exchange_legacy_token(self, access_token: str) -> TokenBundle:
        """Exchange a long-lived token for a rotating access/refresh pair."""
        payload = await self._call(
            constants.OAUTH_EXCHANGE,
            data={**self._client_credentials(), "token": access_token},
        )
        bundle = TokenBundle.from_response(payload)
        if not bundle.access_token:
            raise PlatformRejectedError(
                "missing_access_token", method=constants.OAUTH_EXCHANGE
            )
        return bundle

    async def revoke_token(self, access_token: str) -> bool:
        payload = await self._call(constants.AUTH_REVOKE, token=access_token)
        return bool(payload.get("revoked", True))

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def post_message(
        self, access_token: str, channel_id: str, text: str
    ) -> PostedMessage:
        """Post ``text`` to ``channel_id``.

        If the bot is not in the channel it joins and retries exactly once.

        Raises:
            ChannelJoinError: The bot is not in the channel and could not join
            PlatformRejectedError: Slack refused the message
            TransportError: No usable response
        """
        body = {"channel": channel_id, "text": text}
        try:
            payload = await self._call(
                constants.CHAT_POST_MESSAGE, token=access_token, json=body
            )
        except PlatformRejectedError as e:
            if e.platform_error != constants.ERROR_NOT_IN_CHANNEL:
                raise
            logger.info("slack_joining_channel", channel_id=channel_id)
            await self._join_channel(access_token, channel_id)
            payload = await self._call(
                constants.CHAT_POST_MESSAGE, token=access_token, json=body
            )

        return PostedMessage(
            ts=str(payload.get("ts", "")),
            channel=str(payload.get("channel") or channel_id),
        )

    async def _join_channel(self, access_token: str, channel_id: str) -> None:
        try:
            await self._call(
                constants.CONVERSATIONS_JOIN,
                token=access_token,
                json={"channel": channel_id},
            )
        except PlatformRejectedError as e:
            raise ChannelJoinError(channel_id, e.platform_error) from e
        except InsufficientScopeError as e:
            raise ChannelJoinError(channel_id, constants.ERROR_MISSING_SCOPE) from e

    # ------------------------------------------------------------------
    # Channels and users
    # ------------------------------------------------------------------

    async def list_channels(self, access_token: str) -> list[Channel]:
        """All non-archived public and private channels visible to the token."""
        channels: list[Channel] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {
                "types": constants.CHANNEL_TYPES,
                "exclude_archived": "true",
                "limit": constants.CHANNEL_PAGE_SIZE,
            }
            if cursor:
                params["cursor"] = cursor
            payload = await self._call(
                constants.CONVERSATIONS_LIST,
                token=access_token,
                params=params,
                http_method="GET",
            )
            channels.extend(
                Channel(
                    id=channel["id"],
                    name=channel.get("name", ""),
                    is_private=bool(channel.get("is_private")),
                )
                for channel in payload.get("channels", [])
            )
            cursor = (payload.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return channels

    async def get_channel_info(self, access_token: str, channel_id: str) -> ChannelInfo:
        payload = await self._call(
            constants.CONVERSATIONS_INFO,
            token=access_token,
            params={"channel": channel_id},
            http_method="GET",
        )
        return ChannelInfo.from_response(payload["channel"])

    async def get_user_info(self, access_token: str, user_id: str) -> SlackUser:
        payload = await self._call(
            constants.USERS_INFO,
            token=access_token,
            params={"user": user_id},
            http_method="GET",
        )
        return SlackUser.from_response(payload["user"])

    async def _lookup_users(
        self, access_token: str, user_ids: list[str]
    ) -> dict[str, SlackUser]:
        """Resolve user ids in chunks; lookups that fail are left out."""
        users: dict[str, SlackUser] = {}
        chunk_size = constants.USER_LOOKUP_CHUNK_SIZE
        for start in range(0, len(user_ids), chunk_size):
            chunk = user_ids[start : start + chunk_size]
            results = await asyncio.gather(
                *(self.get_user_info(access_token, uid) for uid in chunk),
                return_exceptions=True,
            )
            for uid, result in zip(chunk, results, strict=True):
                if isinstance(result, SlackUser):
                    users[uid] = result
                elif isinstance(result, ThreadlyError):
                    logger.debug("slack_user_lookup_failed", slack_user_id=uid, error=str(result))
                elif isinstance(result, BaseException):
                    raise result
        return users

    async def list_channel_members(
        self,
        access_token: str,
        channel_id: str,
        cursor: str | None = None,
        limit: int = 100,
    ) -> MembersPage:
        params: dict[str, Any] = {"channel": channel_id, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        payload = await self._call(
            constants.CONVERSATIONS_MEMBERS,
            token=access_token,
            params=params,
            http_method="GET",
        )
        member_ids = [str(m) for m in payload.get("members", [])]
        users = await self._lookup_users(access_token, member_ids)
        next_cursor = (payload.get("response_metadata") or {}).get("next_cursor") or None
        return MembersPage(
            members=[users[uid] for uid in member_ids if uid in users],
            has_more=next_cursor is not None,
            next_cursor=next_cursor,
        )

    async def get_channel_history(
        self,
        access_token: str,
        channel_id: str,
        cursor: str | None = None,
        limit: int = 50,
    ) -> HistoryPage:
        params: dict[str, Any] = {"channel": channel_id, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        payload = await self._call(
            constants.CONVERSATIONS_HISTORY,
            token=access_token,
            params=params,
            http_method="GET",
        )
        raw_messages: list[dict[str, Any]] = payload.get("messages", [])
        author_ids = list(dict.fromkeys(m["user"] for m in raw_messages if m.get("user")))
        users = await self._lookup_users(access_token, author_ids)

        messages = []
        for msg in raw_messages:
            ts = str(msg.get("ts", ""))
            is_bot = msg.get("subtype") == "bot_message"
            bot_name = msg.get("username")
            author = users.get(msg.get("user", ""))
            details = (
                UserDetails(name=author.name, avatar=author.avatar, is_bot=author.is_bot)
                if author
                else None
            )
            if details is None and is_bot and bot_name:
                details = UserDetails(
                    name=bot_name,
                    avatar=(msg.get("icons") or {}).get("image_48"),
                    is_bot=True,
                )
            messages.append(
                HistoryMessage(
                    id=ts,
                    text=msg.get("text", ""),
                    user=msg.get("user"),
                    user_details=details,
                    is_bot=is_bot,
                    bot_name=bot_name,
                    timestamp=ts,
                    posted_at=_ts_to_datetime(ts),
                    reactions=msg.get("reactions") or [],
                    thread_ts=msg.get("thread_ts"),
                    reply_count=msg.get("reply_count") or 0,
                    attachments=msg.get("attachments") or [],
                )
            )

        return HistoryPage(
            messages=messages,
            has_more=bool(payload.get("has_more")),
            next_cursor=(payload.get("response_metadata") or {}).get("next_cursor") or None,
        )


def _ts_to_datetime(ts: str) -> datetime | None:
    try:
        return datetime.fromtimestamp(float(ts), UTC)
    except ValueError:
        return None
