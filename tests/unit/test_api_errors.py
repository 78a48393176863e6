from __future__ import annotations

import pytest

from fairdraw.api.deps import to_http_exception
from fairdraw.services.errors import (
    AlreadyDrawnError,
    ElectionNotFoundError,
    LotteryError,
    LotteryValidationError,
    NoParticipantsError,
    RoleServiceUnavailableError,
    TransientInfraError,
    UnauthorizedError,
)


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (ElectionNotFoundError("missing"), 404),
        (LotteryValidationError("bad table"), 422),
        (AlreadyDrawnError("drawn"), 409),
        (NoParticipantsError("empty"), 400),
        (UnauthorizedError("admin only"), 403),
        (RoleServiceUnavailableError("roles down"), 503),
        (TransientInfraError("retry"), 503),
        (LotteryError("unexpected"), 500),
    ],
)
def test_service_errors_map_to_status_codes(error: LotteryError, expected_status: int) -> None:
    exc = to_http_exception(error)

    assert exc.status_code == expected_status
    assert exc.detail == str(error)
