"""
Exceptions raised by the membership services.

Every failure that a handler has to tell apart gets its own type, so
"no subscription" and "lookup failed" never collapse into the same value.
"""


class MembershipError(Exception):
    """Base exception for membership and entitlement errors"""

    pass


class UnknownTierError(MembershipError):
    """Raised when a tier label is not part of the tier registry"""

    def __init__(self, label: object):
        super().__init__(f"Unknown tier label: {label!r}")
        self.label = label


class ResolutionError(MembershipError):
    """Raised when the active subscription lookup fails at the store level"""

    def __init__(self, caller_id: str, provider_id: str, reason: str):
        super().__init__(
            f"Could not resolve subscription of {caller_id} at provider {provider_id}: {reason}"
        )
        self.caller_id = caller_id
        self.provider_id = provider_id
        self.reason = reason


class FetchError(MembershipError):
    """Raised when a provider catalog cannot be read"""

    def __init__(self, provider_id: str, reason: str):
        super().__init__(f"Could not fetch content of provider {provider_id}: {reason}")
        self.provider_id = provider_id
        self.reason = reason


class PersistenceError(MembershipError):
    """Raised when a write to the store fails for reasons other than state"""

    pass


class SubscriptionNotFoundError(MembershipError):
    def __init__(self, subscription_id: str):
        super().__init__(f"Subscription {subscription_id} not found.")
        self.subscription_id = subscription_id


class SubscriptionConflictError(MembershipError):
    """Raised when a request collides with the current subscription state"""

    pass


class SubscriptionStateError(MembershipError):
    """Raised on a lifecycle transition that the current status does not allow"""

    def __init__(self, subscription_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} subscription {subscription_id} in status {status}.")
        self.subscription_id = subscription_id
        self.status = status
        self.action = action


class ProviderNotFoundError(MembershipError):
    def __init__(self, key: str):
        super().__init__(f"Provider {key} not found.")
        self.key = key


class ContentNotFoundError(MembershipError):
    def __init__(self, content_id: str):
        super().__init__(f"Content {content_id} not found.")
        self.content_id = content_id


class PackageNotFoundError(MembershipError):
    def __init__(self, package_id: str):
        super().__init__(f"Package {package_id} not found.")
        self.package_id = package_id
