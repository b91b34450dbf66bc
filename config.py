# config.py - Centralized configuration for the URL-augmented chat backend
"""
All limits and configuration values in one place.

Secrets (GROQ_API_KEY, REDIS_URL, REDIS_TOKEN) are read from the environment
when the app starts, see server.py. A .env file is loaded on import.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# === INPUT LIMITS ===
# Added on top of the bare {message: string} contract: oversized messages get a 422
MAX_MESSAGE_LENGTH = 4000           # Max characters for a chat message

# === CRAWL LIMITS ===
CRAWL_DEPTH = 2                     # 2 = each URL in the message + its direct links
MAX_LINKS_PER_PAGE = 5              # Outbound links followed per page, document order
RENDER_TIMEOUT_SECONDS = 60         # Per-page render timeout
RENDER_WAIT_UNTIL = "networkidle"   # Playwright load state to wait for
RENDERER = os.getenv("RENDERER", "browser")   # "browser" (playwright) or "static" (requests)
DEDUPE_CRAWL_LINKS = False          # Skip pages already visited within one crawl

# === PROMPT SETTINGS ===
MAX_CONTEXT_CHARS = 5000            # Hard cutoff for crawled text in the prompt
SYSTEM_PROMPT = (
    "You are a helpful assistant. If URLs were provided, "
    "use the scraped content to inform your answers."
)
CONTEXT_LABEL = "Context from URLs: "
NO_RESPONSE_FALLBACK = "No response generated."
CRAWL_ERROR_PREFIX = "Error crawling website: "

# === COMPLETION SERVICE ===
CHAT_MODEL = os.getenv("CHAT_MODEL", "mixtral-8x7b-32768")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
CHAT_TEMPERATURE = 0.5
CHAT_MAX_TOKENS = 500

# === RATE LIMITING ===
RATE_LIMIT_REQUESTS = 5             # 5 requests...
RATE_LIMIT_WINDOW_SECONDS = 10      # ...per sliding 10 second window
RATE_LIMIT_KEY_PREFIX = "ratelimit"
FALLBACK_CLIENT_IP = "127.0.0.1"
# Peers allowed to set X-Forwarded-For / X-Real-IP, comma separated ("*" = any).
# Empty: forwarded headers are ignored and the socket peer is the client.
TRUSTED_PROXIES = tuple(
    ip.strip() for ip in os.getenv("TRUSTED_PROXIES", "").split(",") if ip.strip()
)
RATE_LIMIT_HEADERS = ("X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset")
RATE_LIMIT_EXCLUDED_PATHS = (       # fnmatch globs, never rate limited
    "/static/*",
    "/favicon.ico",
    "/docs",
    "/docs/*",
    "/redoc",
    "/openapi.json",
)

# === LOGGING ===
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
