# exceptions.py
from typing import Optional


class BudgetAlertError(Exception):
    """Base class for errors raised by the budget alert pipeline."""


class ConfigurationError(BudgetAlertError):
    pass


class SkippableBudgetError(BudgetAlertError):
    """The budget cannot be evaluated; skip it and carry on with the sweep."""

    def __init__(self, budget_id, reason: str):
        super().__init__(f"budget {budget_id}: {reason}")
        self.budget_id = budget_id
        self.reason = reason


class MissingUserError(SkippableBudgetError):
    def __init__(self, budget_id):
        super().__init__(budget_id, "owning user not found")


class MalformedAmountError(SkippableBudgetError):
    def __init__(self, value, budget_id=None):
        super().__init__(budget_id, f"malformed monetary value {value!r}")
        self.value = value


class NonPositiveLimitError(SkippableBudgetError):
    def __init__(self, budget_id, limit):
        super().__init__(budget_id, f"limit {limit} is not positive")
        self.limit = limit


class DispatchChannelError(BudgetAlertError):
    """One delivery channel failed for one alert."""

    channel = "unknown"

    def __init__(self, user_id, category: Optional[str], message: str):
        where = f" ({category})" if category else ""
        super().__init__(f"{self.channel} channel failed for user {user_id}{where}: {message}")
        self.user_id = user_id
        self.category = category


class NotificationStoreError(DispatchChannelError):
    channel = "notification"


class PushError(DispatchChannelError):
    channel = "push"


class MailError(DispatchChannelError):
    channel = "email"
