"""User agent parsing for click analytics.

This is a keyword-based parser covering the common browsers and platforms.
Anything it cannot place is reported as "Unknown" so group-by stays stable.
"""

from typing import Optional, Sequence, Tuple

from shortlink.models.click import UNKNOWN, DeviceInfo

# Order matters: Edge and Opera UAs also mention Chrome, Chrome UAs mention Safari
BROWSER_RULES: Sequence[Tuple[str, str]] = (
    ("edg", "Edge"),
    ("opr/", "Opera"),
    ("opera", "Opera"),
    ("samsungbrowser", "Samsung Internet"),
    ("firefox", "Firefox"),
    ("fxios", "Firefox"),
    ("crios", "Chrome"),
    ("chrome", "Chrome"),
    ("chromium", "Chrome"),
    ("safari", "Safari"),
    ("msie", "Internet Explorer"),
    ("trident", "Internet Explorer"),
)

# Android UAs contain "Linux", iOS UAs contain "like Mac OS X"
OS_RULES: Sequence[Tuple[str, str]] = (
    ("windows", "Windows"),
    ("android", "Android"),
    ("iphone", "iOS"),
    ("ipad", "iOS"),
    ("ipod", "iOS"),
    ("cros", "Chrome OS"),
    ("mac os", "macOS"),
    ("macintosh", "macOS"),
    ("linux", "Linux"),
)

BOT_KEYWORDS = ("bot", "crawl", "spider", "slurp")
TABLET_KEYWORDS = ("tablet", "ipad")
MOBILE_KEYWORDS = ("mobile", "iphone", "ipod", "android")


def _match(user_agent_lower: str, rules: Sequence[Tuple[str, str]]) -> str:
    for keyword, name in rules:
        if keyword in user_agent_lower:
            return name
    return UNKNOWN


def detect_form_factor(user_agent: Optional[str]) -> str:
    """
    Classify a user agent as bot, tablet, mobile or desktop.

    Android phones say "Mobile" while Android tablets do not, so an Android
    UA without it is treated as a tablet.
    """
    if not user_agent:
        return UNKNOWN

    ua = user_agent.lower()
    if any(keyword in ua for keyword in BOT_KEYWORDS):
        return "bot"
    if any(keyword in ua for keyword in TABLET_KEYWORDS):
        return "tablet"
    if "android" in ua and "mobile" not in ua:
        return "tablet"
    if any(keyword in ua for keyword in MOBILE_KEYWORDS):
        return "mobile"
    return "desktop"


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    if not user_agent:
        return DeviceInfo()

    ua = user_agent.lower()
    return DeviceInfo(
        browser=_match(ua, BROWSER_RULES),
        os=_match(ua, OS_RULES),
        form_factor=detect_form_factor(user_agent),
    )
