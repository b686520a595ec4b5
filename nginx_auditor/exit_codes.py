"""Process exit codes returned by a scan."""

SUCCESS = 0
POLICY_VIOLATION = 1
INVALID_CONFIG = 2
PARTIAL_FAILURE = 3
FATAL_ERROR = 4

_DESCRIPTIONS = {
    SUCCESS: "Scan completed, no findings at or above the fail-on threshold",
    POLICY_VIOLATION: "Policy violation: findings at or above the fail-on threshold",
    INVALID_CONFIG: "Invalid configuration",
    PARTIAL_FAILURE: "Scan completed with warnings or errors",
    FATAL_ERROR: "Scan failed",
}


def describe(code: int) -> str:
    return _DESCRIPTIONS.get(code, f"Unknown exit code {code}")
