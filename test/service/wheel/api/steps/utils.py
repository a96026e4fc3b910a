from functools import partial
from typing import Any, Dict, List

import anyio

from src.platform.config.di import container
from src.service.wheel.domain.entity.participant_entity import Participant


def extract_table_data(datatable: List[List[str]]) -> Dict[str, Any]:
    headers, values = datatable[0], datatable[1]
    return dict(zip(headers, values, strict=True))


def extract_column(datatable: List[List[str]], column: str) -> List[str]:
    index = datatable[0].index(column)
    return [row[index] for row in datatable[1:]]


def assert_response_status(response, expected_status: int, message: str | None = None):
    response_text = getattr(response, 'text', getattr(response, 'content', 'N/A'))
    assert response.status_code == expected_status, (
        message or f'Expected {expected_status}, got {response.status_code}: {response_text}'
    )


def fetch_roster(session_id: str) -> List[Participant]:
    """Read the in-memory roster directly; the API has no roster endpoint"""
    roster = container.roster_provider()
    return anyio.run(partial(roster.fetch_roster, session_id=session_id))
