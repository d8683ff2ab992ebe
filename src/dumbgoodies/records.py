from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dumbgoodies.db import Concept, Project, Render


def create_project(session: Session, brand: str, logo_url: str | None = None) -> Project:
    proj = Project(brand=brand, logo_url=logo_url)
    session.add(proj)
    session.commit()
    return proj


def add_concepts(session: Session, project_id: str, ideas: Iterable[tuple[str, str]]) -> list[Concept]:
    concepts = [Concept(project_id=project_id, label=label, prompt_base=prompt_base, status="idea") for label, prompt_base in ideas]
    session.add_all(concepts)
    session.commit()
    return concepts


def get_project(session: Session, project_id: str) -> Project | None:
    return session.get(Project, project_id)


def get_concept(session: Session, project_id: str, concept_id: str) -> Concept | None:
    concept = session.get(Concept, concept_id)
    if concept is None or concept.project_id != project_id:
        return None
    return concept


def save_render(
    session: Session,
    model: str,
    image_url: str,
    thumbnail_url: str | None = None,
    project_id: str | None = None,
    concept_id: str | None = None,
    brand: str | None = None,
    product: str | None = None,
    public: bool = True,
) -> Render:
    render = Render(
        project_id=project_id,
        concept_id=concept_id,
        brand=brand,
        product=product,
        model=model,
        image_url=image_url,
        thumbnail_url=thumbnail_url,
        public=public,
    )
    session.add(render)
    session.commit()
    return render


def list_public_renders(session: Session, limit: int = 60) -> list[Render]:
    stmt = select(Render).where(Render.public.is_(True)).order_by(Render.created_at.desc()).limit(limit)
    return list(session.scalars(stmt))


def render_to_dict(r: Render) -> dict[str, Any]:
    return {
        "id": r.id,
        "model": r.model,
        "imageUrl": r.image_url,
        "thumbnailUrl": r.thumbnail_url,
        "brand": r.brand,
        "product": r.product,
        "projectId": r.project_id,
        "conceptId": r.concept_id,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
    }
