"""Slack Web API method names and error codes."""

# OAuth
OAUTH_ACCESS = "oauth.v2.access"
OAUTH_EXCHANGE = "oauth.v2.exchange"
AUTH_REVOKE = "auth.revoke"

# Messaging
CHAT_POST_MESSAGE = "chat.postMessage"

# Conversations
CONVERSATIONS_LIST = "conversations.list"
CONVERSATIONS_INFO = "conversations.info"
CONVERSATIONS_MEMBERS = "conversations.members"
CONVERSATIONS_HISTORY = "conversations.history"
CONVERSATIONS_JOIN = "conversations.join"

# Users
USERS_INFO = "users.info"

# Error codes with dedicated handling
ERROR_MISSING_SCOPE = "missing_scope"
ERROR_NOT_IN_CHANNEL = "not_in_channel"

CHANNEL_TYPES = "public_channel,private_channel"
CHANNEL_PAGE_SIZE = 200
USER_LOOKUP_CHUNK_SIZE = 30
