# linkhub/errors.py
from typing import Optional


class LinkError(Exception):
    """
    Base for every failure of the account-linking flow.
    `kind` is stable and safe to show to callers; `detail` is human readable.
    """

    kind = "link_error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.kind.replace("_", " ")
        super().__init__(self.detail)


class UnknownPlatform(LinkError):
    kind = "unknown_platform"


class AdapterUnavailable(LinkError):
    kind = "adapter_unavailable"


class AuthorizationDenied(LinkError):
    kind = "authorization_denied"


class SessionExpired(LinkError):
    kind = "session_expired"


class StateMismatch(LinkError):
    kind = "state_mismatch"


class ExchangeFailed(LinkError):
    kind = "exchange_failed"


class IdentityUnresolvable(LinkError):
    kind = "identity_unresolvable"


class AccountAlreadyLinkedElsewhere(LinkError):
    kind = "account_already_linked_elsewhere"


class CredentialExpired(LinkError):
    kind = "credential_expired"

    def __init__(self, platform: str, detail: Optional[str] = None):
        self.platform = platform
        super().__init__(detail or f"credential expired, reconnect your {platform} account")


class UniquenessViolation(LinkError):
    """Raised by the credential store only; never reaches HTTP callers."""

    kind = "uniqueness_violation"


class Unsupported(LinkError):
    kind = "unsupported"


class LinkedAccountNotFound(LinkError):
    kind = "linked_account_not_found"
