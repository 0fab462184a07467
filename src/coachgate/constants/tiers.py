"""
Centralized membership tier configuration constants.

Tier order, pricing and period defaults live here so the registry, the
pricing endpoint and the subscription lifecycle read the same values.
"""

# Declared order, lowest access first. Rank is position + 1.
TIER_ORDER = ("basic", "premium", "elite")

# Labels written by older app versions
TIER_ALIASES = {
    "pro": "premium",
}

# Basic Tier Configuration
BASIC_NAME = "Basic"
BASIC_PRICE_EUR = 9.99
BASIC_DESCRIPTION = "Get started with your coach's core training library"

# Premium Tier Configuration
PREMIUM_NAME = "Premium"
PREMIUM_PRICE_EUR = 19.99
PREMIUM_DESCRIPTION = "Full video library and downloadable training plans"

# Elite Tier Configuration
ELITE_NAME = "Elite"
ELITE_PRICE_EUR = 49.99
ELITE_DESCRIPTION = "Everything your coach publishes, including elite-only programs"

# Pricing Configuration
CURRENCY = "EUR"
CURRENCY_SYMBOL = "€"
BILLING_INTERVAL = "month"

# Subscription period granted on activation
DEFAULT_PERIOD_DAYS = 30

# Presigned download links
DEFAULT_SIGNED_URL_TTL_SECONDS = 3600
