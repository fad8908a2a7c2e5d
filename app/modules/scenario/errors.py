from __future__ import annotations

SCENARIO_ERROR_INPUT_INVALID = "INPUT_INVALID"
SCENARIO_ERROR_CONFIG_MISSING = "CONFIG_MISSING"
SCENARIO_ERROR_UPSTREAM_STATUS = "UPSTREAM_STATUS"
SCENARIO_ERROR_UPSTREAM_EMPTY = "UPSTREAM_EMPTY"
SCENARIO_ERROR_UPSTREAM_TRANSPORT = "UPSTREAM_TRANSPORT"
SCENARIO_ERROR_REQUEST_BODY = "REQUEST_BODY"

INTERNAL_ERROR_MESSAGE = "Внутренняя ошибка сервера."


class ScenarioError(Exception):
    """A scenario request failure carrying the HTTP status and the user-facing message."""

    def __init__(self, message: str, *, status_code: int, error_kind: str):
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.error_kind = str(error_kind)
