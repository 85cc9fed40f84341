"""
Error types raised by the autoscaler.

  ConfigError           — startup-fatal: an env variable is set but malformed
  InvalidInput          — request-fatal: the review request cannot be decided
  InvalidFixedReplicas  — the fixedReplicas annotation is not a usable count
"""


class ConfigError(Exception):
    """A configuration variable is present but cannot be parsed."""

    def __init__(self, name: str, value: str, reason: str):
        self.name = name
        self.value = value
        self.reason = reason
        super().__init__(f"Could not parse environment {name} variable ({value!r}): {reason}")


class InvalidInput(Exception):
    """The request carries a value the decision engine refuses to act on."""


class InvalidFixedReplicas(InvalidInput):
    def __init__(self, value, reason: str):
        self.value = value
        super().__init__(f"Invalid fixedReplicas value {value!r}. {reason}")
