"""Default in-memory data set for the key-value store."""

from __future__ import annotations

# Sample routine shared by the in-memory store and database seeding.
DEFAULT_STORE_ENTRIES: dict[str, object] = {
    "planningweb:activeRoutineId": "rutina-semana",
    "planningweb:routines": [
        {
            "id": "rutina-semana",
            "name": "Semana laboral",
            "days": {
                "mon": [
                    {"id": "gym-mon", "title": "Gym", "start": "06:00", "end": "07:00"},
                    {"id": "work-mon", "title": "Trabajo", "start": "08:00", "end": "17:00"},
                ],
                "tue": [
                    {"id": "work-tue", "title": "Trabajo", "start": "08:00", "end": "17:00"},
                ],
                "wed": [
                    {"id": "gym-wed", "title": "Gym", "start": "06:00", "end": "07:00"},
                    {"id": "work-wed", "title": "Trabajo", "start": "08:00", "end": "17:00"},
                ],
                "thu": [
                    {"id": "work-thu", "title": "Trabajo", "start": "08:00", "end": "17:00"},
                ],
                "fri": [
                    {"id": "gym-fri", "title": "Gym", "start": "06:00", "end": "07:00"},
                    {"id": "work-fri", "title": "Trabajo", "start": "08:00", "end": "16:00"},
                ],
                "sat": [
                    {"id": "market-sat", "title": "Mercado", "start": "09:00", "end": "10:30"},
                ],
                "sun": [],
            },
        }
    ],
    "planningweb:notifyBeforeStart": 10,
    "planningweb:notifyBeforeEnd": 5,
}
