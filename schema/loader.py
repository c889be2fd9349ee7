"""
schema.loader - Seed the data store from a JSON catalog at startup.

Catalog layout::

    {
      "feature_types": [
        {"code": "POS", "name": "Postes", "icon": "Zap",
         "attributes": [{"field": "MATERIAL", "kind": "select",
                         "required": true, "options": ["CONCRETO", "MADERA"],
                         "order": 1}, ...]}
      ],
      "projects": [
        {"id": "...", "name": "Red Norte", "feature_types": ["POS"]}
      ]
    }

Only runs against an empty feature_types table; the data store owns the
schema afterwards.
"""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy.orm import Session

from db.models import AttributeDefinitionRow, FeatureType, Project
from schema.model import AttributeDefinition


def load_catalog(session: Session, catalog_path: str | Path) -> dict:
    """
    Insert the catalog's feature types, attribute definitions, projects
    and project assignments.  Caller commits.

    Returns a stats dict for logging.
    """
    with open(catalog_path, encoding="utf-8") as fh:
        catalog = json.load(fh)

    by_code: dict[str, FeatureType] = {}
    attr_count = 0
    for ft_raw in catalog.get("feature_types", []):
        code = str(ft_raw["code"]).strip().upper()
        ft = FeatureType(
            code=code,
            name=ft_raw.get("name", code),
            icon=ft_raw.get("icon", "MapPin"),
        )
        if ft_raw.get("id"):
            ft.id = str(ft_raw["id"])
        for idx, a_raw in enumerate(ft_raw.get("attributes", []), start=1):
            a_raw = {"order": idx, **a_raw}
            defn = AttributeDefinition.from_dict(a_raw)
            ft.attributes.append(AttributeDefinitionRow(
                field=defn.field,
                kind=defn.kind.value,
                required=defn.required,
                options_json=json.dumps(list(defn.options), ensure_ascii=False),
                order=defn.order,
            ))
            attr_count += 1
        session.add(ft)
        by_code[code] = ft

    projects = 0
    for p_raw in catalog.get("projects", []):
        project = Project(name=p_raw.get("name", ""))
        if p_raw.get("id"):
            project.id = str(p_raw["id"])
        for code in p_raw.get("feature_types", []):
            ft = by_code.get(str(code).strip().upper())
            if ft is not None:
                project.feature_types.append(ft)
        session.add(project)
        projects += 1

    session.flush()
    return {
        "feature_types": len(by_code),
        "attributes": attr_count,
        "projects": projects,
    }
