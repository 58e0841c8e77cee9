# portal/models/content.py
"""
Enumerations for content rows (resources, questions, events).
Must stay in sync with the CHECK constraints in portal.core.schema.
"""

RESOURCE_TYPES = (
    "whitepaper", "guide", "tool", "article", "news",
    "homepage video", "lab result", "product",
    "video", "image", "document",
)
ACCESS_LEVELS = ("public", "members")

QUESTION_STATUSES = ("open", "closed", "answered")

EVENT_TYPES = ("upcoming", "past")

DEFAULT_TEAM_CATEGORIES = '["leadership"]'
