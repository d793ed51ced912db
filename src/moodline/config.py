"""Configuration constants.

Centralizes wire-format markers, limits and canned texts used across moodline.
Environment-driven settings are read in moodline.cli.providers.
"""

# Stream wire format
SSE_DATA_PREFIX = "data:"
SSE_COMMENT_PREFIX = ":"
SSE_DONE_SENTINEL = "[DONE]"

# Embedded mood directive
MOOD_LOG_MARKER = "MOOD_LOG:"
DIRECTIVE_MIN_INTENSITY = 1
DIRECTIVE_MAX_INTENSITY = 5

# Mood check-ins entered by the user use a wider scale
MOOD_ENTRY_MIN_INTENSITY = 1
MOOD_ENTRY_MAX_INTENSITY = 10
MOOD_NOTE_MAX_LENGTH = 500

# Mood entry contexts
MOOD_CONTEXT_PRE_CONVERSATION = "pre-conversation"
MOOD_CONTEXT_CONVERSATION = "conversation"

# Conversation handling
HISTORY_WINDOW = 6  # Messages sent along with each new user message
SESSION_TITLE_MAX_LENGTH = 50
DEFAULT_SESSION_TITLE = "New Chat"

# Gateway defaults
DEFAULT_GATEWAY_MODEL = "google/gemini-2.5-flash"
DEFAULT_REQUEST_TIMEOUT = 60.0  # Seconds, applied by HTTP transports only
WEB_SEARCH_PREFIX = "[Web Search]"
WEB_SEARCH_URL = "https://api.duckduckgo.com/"
WEB_SEARCH_MAX_TOPICS = 3

GREETING_MESSAGE = (
    "Hello! I'm here to support you with your mental health journey. "
    "Feel free to share what's on your mind, ask questions, or just have a "
    "conversation. How are you feeling today?"
)

CONNECTION_ERROR_TITLE = "Connection Error"
CONNECTION_ERROR_MESSAGE = (
    "I'm having trouble connecting right now. Please try again in a moment."
)

FALLBACK_REPLY = (
    "I'm experiencing some technical difficulties right now. Please try again "
    "in a moment, and remember that if you're in crisis, please reach out to a "
    "mental health professional or crisis hotline."
)

RATE_LIMIT_MESSAGE = "Rate limits exceeded, please try again later."
PAYMENT_REQUIRED_MESSAGE = "Payment required, please add funds to your AI workspace."
