from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from dumbgoodies.api.deps import Services, enforce_rate_limit, get_db, get_services
from dumbgoodies.api.schemas import ProposeRequest, RenderMoreRequest, RenderRequest, SaveRequest, url_or_none
from dumbgoodies.concepts import clean_brand, propose_concepts
from dumbgoodies.config import settings
from dumbgoodies.errors import (
    BadIdeasResponse,
    BrandError,
    FetchError,
    GenerationError,
    ImageDecodeError,
    ProviderError,
    RenderFailed,
)
from dumbgoodies.records import get_concept, get_project, list_public_renders, render_to_dict, save_render
from dumbgoodies.uploads import store_upload

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(title="dumbgoodies")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

files_dir = Path(settings.data_dir) / "buckets"
files_dir.mkdir(parents=True, exist_ok=True)
app.mount("/files", StaticFiles(directory=str(files_dir)), name="files")

# Every JSON/multipart API route shares the per-IP limiter.
api = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = "invalid request"
    return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s", request.url.path)
    return JSONResponse({"error": "internal_error"}, status_code=500)


def _brand_or_400(brand: str) -> str:
    try:
        return clean_brand(brand)
    except BrandError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/health")
def health():
    return {"status": "ok"}


@api.post("/upload")
async def upload(file: UploadFile | None = File(None), services: Services = Depends(get_services)):
    if file is None:
        raise HTTPException(status_code=400, detail="missing_file")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="empty_file")

    log.info("upload %s (%s, %d bytes)", file.filename, file.content_type, len(content))
    try:
        stored = store_upload(
            services.buckets,
            services.settings.bucket_uploads,
            content,
            file.content_type,
            normalize=services.settings.normalize_uploads,
        )
    except OSError as exc:
        log.error("upload write failed: %s", exc)
        raise HTTPException(status_code=500, detail=f"Upload failed: {exc}") from exc
    return {"url": stored.url, "path": stored.path, "contentType": stored.content_type}


@api.post("/propose")
async def propose(body: ProposeRequest, services: Services = Depends(get_services), db: Session = Depends(get_db)):
    brand = _brand_or_400(body.brand)
    try:
        project, concepts = await propose_concepts(
            db,
            services.ideas(),
            brand,
            logo_url=url_or_none(body.logo_url),
            product_hint=body.product_hint,
            product_ref_url=url_or_none(body.product_ref_url),
        )
    except BadIdeasResponse as exc:
        log.warning("bad ideas response for %r: %s", brand, exc)
        raise HTTPException(status_code=500, detail="Bad ideas response") from exc
    except ProviderError as exc:
        log.error("propose failed for %r: %s", brand, exc)
        raise HTTPException(status_code=500, detail="Propose failed") from exc

    return JSONResponse(
        {
            "projectId": project.id,
            "concepts": [{"id": c.id, "label": c.label, "prompt_base": c.prompt_base} for c in concepts],
        },
        headers={"x-project-id": project.id},
    )


@api.post("/render")
async def render(body: RenderRequest, services: Services = Depends(get_services), db: Session = Depends(get_db)):
    brand = _brand_or_400(body.brand)
    if get_project(db, body.project_id) is None:
        raise HTTPException(status_code=404, detail="project_not_found")
    if get_concept(db, body.project_id, body.concept_id) is None:
        raise HTTPException(status_code=404, detail="concept_not_found")

    renderer = services.renderer()
    try:
        results = await renderer.render_concept(
            project_id=body.project_id,
            concept_id=body.concept_id,
            brand=brand,
            prompt_base=body.prompt_base,
            logo_url=url_or_none(body.logo_url),
            product_ref_url=url_or_none(body.product_ref_url),
            variants=body.variants,
        )
    except RenderFailed as exc:
        raise HTTPException(status_code=500, detail={"error": "render_failed", "details": exc.details}) from exc
    except FetchError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"results": [r.as_dict() for r in results]}


@api.post("/render-more")
async def render_more(body: RenderMoreRequest, services: Services = Depends(get_services)):
    brand = _brand_or_400(body.brand)
    renderer = services.renderer()
    try:
        result = await renderer.render_more(brand, body.product, logo_url=url_or_none(body.logo_url))
    except (ProviderError, GenerationError, FetchError, ImageDecodeError) as exc:
        log.error("render-more failed for %r/%r: %s", brand, body.product, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"product": body.product, "image": result.as_dict()}


@api.post("/save")
def save(body: SaveRequest, db: Session = Depends(get_db)):
    if body.project_id and get_project(db, body.project_id) is None:
        raise HTTPException(status_code=404, detail="project_not_found")
    if body.concept_id and get_concept(db, body.project_id or "", body.concept_id) is None:
        raise HTTPException(status_code=404, detail="concept_not_found")

    render = save_render(
        db,
        model=body.model,
        image_url=str(body.image_url),
        thumbnail_url=url_or_none(body.thumbnail_url),
        project_id=body.project_id,
        concept_id=body.concept_id,
        brand=body.brand,
        product=body.product,
        public=body.public,
    )
    log.info("saved render %s (%s, public=%s)", render.id, render.model, render.public)
    return {"ok": True, "renderId": render.id}


@app.get("/renders")
def renders(limit: int = 60, db: Session = Depends(get_db)):
    limit = max(1, min(limit, 200))
    return {"renders": [render_to_dict(r) for r in list_public_renders(db, limit=limit)]}


@app.get("/gallery", response_class=HTMLResponse)
def gallery(request: Request, db: Session = Depends(get_db)):
    items = [render_to_dict(r) for r in list_public_renders(db, limit=60)]
    return templates.TemplateResponse(request=request, name="gallery.html", context={"renders": items})


app.include_router(api)
