"""YouTube policy categories analyzed by the pipeline.

Category keys are ``<GROUP>_<CATEGORY>`` (e.g. ``ADVERTISER_FRIENDLY_PROFANITY``).
Weights drive the category component of the overall score.
"""

POLICY_CATEGORIES: dict[str, dict[str, str]] = {
    "CONTENT_SAFETY": {
        "VIOLENCE": "Violence & Graphic Content",
        "DANGEROUS_ACTS": "Dangerous Acts & Challenges",
        "HARMFUL_CONTENT": "Harmful or Dangerous Content",
        "CHILD_SAFETY": "Child Safety",
    },
    "COMMUNITY_STANDARDS": {
        "HARASSMENT": "Harassment & Cyberbullying",
        "HATE_SPEECH": "Hate Speech",
        "SPAM": "Spam, Deceptive Practices & Scams",
        "MISINFORMATION": "Misinformation",
    },
    "ADVERTISER_FRIENDLY": {
        "SEXUAL_CONTENT": "Sexual Content",
        "PROFANITY": "Profanity & Inappropriate Language",
        "CONTROVERSIAL": "Controversial or Sensitive Topics",
        "BRAND_SAFETY": "Brand Safety Issues",
    },
    "LEGAL_COMPLIANCE": {
        "COPYRIGHT": "Copyright & Intellectual Property",
        "PRIVACY": "Privacy & Personal Information",
        "TRADEMARK": "Trademark Violations",
        "LEGAL_REQUESTS": "Legal Requests & Compliance",
    },
    "MONETIZATION": {
        "AD_POLICIES": "Ad-Friendly Content Guidelines",
        "SPONSORED_CONTENT": "Sponsored Content Disclosure",
        "MONETIZATION_ELIGIBILITY": "Monetization Eligibility",
    },
}

CATEGORY_NAMES: dict[str, str] = {
    f"{group}_{key}": name
    for group, categories in POLICY_CATEGORIES.items()
    for key, name in categories.items()
}

CATEGORY_KEYS: list[str] = list(CATEGORY_NAMES)

# High priority 2.0, medium 1.5, everything else 1.0
CATEGORY_WEIGHTS: dict[str, float] = {
    "CONTENT_SAFETY_VIOLENCE": 2.0,
    "CONTENT_SAFETY_HARMFUL_CONTENT": 2.0,
    "COMMUNITY_STANDARDS_HATE_SPEECH": 2.0,
    "CONTENT_SAFETY_CHILD_SAFETY": 2.0,
    "COMMUNITY_STANDARDS_HARASSMENT": 2.0,
    "CONTENT_SAFETY_DANGEROUS_ACTS": 1.5,
    "ADVERTISER_FRIENDLY_SEXUAL_CONTENT": 1.5,
    "LEGAL_COMPLIANCE_PRIVACY": 1.5,
    "MONETIZATION_MONETIZATION_ELIGIBILITY": 1.5,
}

DEFAULT_CATEGORY_WEIGHT = 1.0


def category_weight(category: str) -> float:
    """Aggregation weight for a category key."""
    return CATEGORY_WEIGHTS.get(category, DEFAULT_CATEGORY_WEIGHT)


def normalize_category_key(raw: str) -> str:
    """
    Map a model-supplied category label onto a catalog key.

    Accepts exact keys, display names and loose spellings such as
    ``"advertiser friendly profanity"``. Unknown labels are upper-cased
    with spaces replaced so they are still kept.
    """
    candidate = raw.strip().upper().replace(" ", "_").replace("-", "_")
    if candidate in CATEGORY_NAMES:
        return candidate

    lowered = raw.strip().lower()
    for key, name in CATEGORY_NAMES.items():
        if name.lower() == lowered:
            return key

    return candidate
