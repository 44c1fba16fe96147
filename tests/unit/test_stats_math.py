import pytest

from jobflow.core.stats import response_rate


@pytest.mark.parametrize(
    ("responses", "applications", "expected"),
    [
        (0, 0, 0),
        (5, 0, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (1, 200, 1),
        (1, 201, 0),
        (4, 4, 100),
    ],
)
def test_response_rate_rounds_half_up(responses: int, applications: int, expected: int) -> None:
    assert response_rate(responses, applications) == expected
