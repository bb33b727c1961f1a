"""
Board payload builders for client tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from kanban_shared.schemas.projects import BoardRead

PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
OWNER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000bb")
NOW = datetime(2025, 1, 1, 12, 0, 0)


def board_payload(layout: dict[str, list[str]], project_id: uuid.UUID = PROJECT_ID) -> dict:
    """Server-shaped board JSON for ``{column name: [task titles]}``.

    Ids are derived from names so two payloads with the same names agree.
    """
    columns = []
    for ci, (name, titles) in enumerate(layout.items()):
        column_id = uuid.uuid5(project_id, f"column:{name}")
        columns.append({
            "id": str(column_id),
            "project_id": str(project_id),
            "name": name,
            "position": ci,
            "wip_limit": None,
            "color": "#6366f1",
            "created_at": NOW.isoformat(),
            "tasks": [
                {
                    "id": str(uuid.uuid5(project_id, f"task:{title}")),
                    "project_id": str(project_id),
                    "column_id": str(column_id),
                    "title": title,
                    "priority": "medium",
                    "position": ti,
                    "created_by": str(OWNER_ID),
                    "created_at": NOW.isoformat(),
                    "updated_at": NOW.isoformat(),
                }
                for ti, title in enumerate(titles)
            ],
        })
    return {
        "project": {
            "id": str(project_id),
            "name": "Launch",
            "owner_id": str(OWNER_ID),
            "created_at": NOW.isoformat(),
            "updated_at": NOW.isoformat(),
        },
        "columns": columns,
        "members": [],
    }


def board_read(layout: dict[str, list[str]]) -> BoardRead:
    return BoardRead.model_validate(board_payload(layout))


def task_id(title: str) -> uuid.UUID:
    return uuid.uuid5(PROJECT_ID, f"task:{title}")


def column_id(name: str) -> uuid.UUID:
    return uuid.uuid5(PROJECT_ID, f"column:{name}")


LAYOUT = {
    "To Do": ["A", "B", "C"],
    "In Progress": ["D"],
    "Review": [],
    "Done": ["E", "F"],
}

