"""Classify a User-Agent header into one device and one browser category.

User-Agent strings name several engines at once (Edge says Chrome and
Safari, Chrome says Safari) and iPad Safari also says Mobile, so devices and
browsers are matched in a fixed order with the most specific token first.
"""

DEVICE_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("tablet", ("iPad", "Tablet")),
    ("mobile", ("Mobile",)),
)

BROWSER_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("edge", ("Edg/", "Edge/", "EdgA/", "EdgiOS/")),
    ("firefox", ("Firefox/", "FxiOS/")),
    ("chrome", ("Chrome/", "CriOS/")),
    ("safari", ("Safari/",)),
)


def classify_device(user_agent: str) -> str:
    """Return 'mobile', 'tablet' or 'desktop'. Anything without a hint is desktop."""
    for category, hints in DEVICE_HINTS:
        if any(h in user_agent for h in hints):
            return category
    return "desktop"


def classify_browser(user_agent: str) -> str:
    """Return 'edge', 'firefox', 'chrome', 'safari' or 'other'."""
    for category, hints in BROWSER_HINTS:
        if any(h in user_agent for h in hints):
            return category
    return "other"


def classify(user_agent: str) -> tuple[str, str]:
    return classify_device(user_agent), classify_browser(user_agent)
