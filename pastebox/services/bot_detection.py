import re
import time

BOT_USER_AGENT = re.compile(
    r"bot|crawler|spider|scraper|curl|wget|python-requests|headless|phantom|selenium",
    re.IGNORECASE,
)
MIN_USER_AGENT_LENGTH = 20


def detect_bot_headers(headers) -> str | None:
    """Return the reason the request headers look automated, or None for a plausible browser."""
    if not headers.get("accept-language") or not headers.get("accept-encoding"):
        return "missing-headers"
    user_agent = headers.get("user-agent") or ""
    if BOT_USER_AGENT.search(user_agent):
        return "bot-ua"
    if len(user_agent) < MIN_USER_AGENT_LENGTH:
        return "short-ua"
    return None


def detect_bot_submission(
    honeypot: str | None,
    rendered_at_ms: float | None,
    min_fill_seconds: float,
    now: float | None = None,
) -> str | None:
    # honeypot is a form field hidden from people; rendered_at_ms is the page's Date.now() at render
    if honeypot:
        return "honeypot"
    if rendered_at_ms:
        now = time.time() if now is None else now
        if now * 1000 - rendered_at_ms < min_fill_seconds * 1000:
            return "too-fast"
    return None
