# transit_lines/api/default_routes.py
"""Built-in lines shown alongside stored routes.

These are display-only: they are never written to Firestore and cannot be
deleted through the repository.
"""

from typing import List

from transit_lines.api.models import BUILTIN_ID_PREFIX, Point, Route, reindex

_DEFAULT_LINES = [
    {
        "slug": "linea-centro",
        "name": "Línea Centro",
        "color": "#1E88E5",
        "stops": [
            ("Plaza Principal", "Av. Heroínas", -17.3935, -66.1570),
            ("Mercado 25 de Mayo", "C. 25 de Mayo", -17.3968, -66.1582),
            ("La Cancha", "Av. Aroma", -17.4040, -66.1570),
        ],
    },
    {
        "slug": "linea-norte",
        "name": "Línea Norte",
        "color": "#43A047",
        "stops": [
            ("Plaza Colón", "Av. Ballivián", -17.3880, -66.1560),
            ("El Prado", "Av. Ballivián", -17.3830, -66.1565),
            ("Recoleta", "Av. Pando", -17.3760, -66.1560),
        ],
    },
]


def get_default_routes() -> List[Route]:
    """Return fresh copies of the built-in lines."""
    routes = []
    for line in _DEFAULT_LINES:
        points = reindex(
            Point(latitude=lat, longitude=lng, street=street, name=name)
            for name, street, lat, lng in line["stops"]
        )
        routes.append(
            Route(
                id=f"{BUILTIN_ID_PREFIX}{line['slug']}",
                name=line["name"],
                color=line["color"],
                points=points,
                public=True,
                builtin=True,
            )
        )
    return routes


def is_builtin_id(route_id) -> bool:
    return isinstance(route_id, str) and route_id.startswith(BUILTIN_ID_PREFIX)
