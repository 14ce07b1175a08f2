"""FastAPI routes for serving, uploading and editing images."""
import logging
import secrets

from fastapi import BackgroundTasks, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError

from database import (
    delete_image_row,
    get_image,
    get_session,
    record_access,
    slug_exists,
    total_size,
    update_image,
)
from models import Image
from resolver import UnsupportedSizeError
from storage import ORIGINAL, NotFoundError, OriginStore
from transcoder import (
    ProcessResult,
    TranscodeError,
    TransformParams,
    process_variants,
    process_with_transform,
)
from utils import generate_slug, is_valid_slug
from validator import FileTooLargeError, InvalidFormatError, validate_and_detect

logger = logging.getLogger(__name__)

SLUG_LENGTH = 5


def _save_variants(store: OriginStore, slug: str, results: list[ProcessResult]) -> None:
    """Write all variants, the original last so it only appears once the set is complete."""
    for res in sorted(results, key=lambda r: r.name == ORIGINAL):
        store.save(slug, res.name, res.data)


def _unique_slug(engine) -> str:
    # Generate a batch of candidates to minimise lookups
    while True:
        for candidate in (generate_slug(SLUG_LENGTH) for _ in range(20)):
            if not slug_exists(engine, candidate):
                return candidate


def _authorize(engine, slug: str, edit_token: str) -> Image:
    if not is_valid_slug(slug):
        raise HTTPException(404, "Not found")
    img = get_image(engine, slug)
    if not img:
        raise HTTPException(404, "Not found")
    if not img.edit_token or not secrets.compare_digest(img.edit_token, edit_token):
        raise HTTPException(403, "Forbidden")
    return img


def _serve(request: Request, background_tasks: BackgroundTasks, slug: str, size: str):
    state = request.app.state
    slug = slug.removesuffix(".webp")
    if not is_valid_slug(slug):
        raise HTTPException(404, "Not found")
    try:
        resolved = state.resolver.resolve(slug, size)
    except (UnsupportedSizeError, NotFoundError):
        raise HTTPException(404, "Not found")
    except TranscodeError:
        raise HTTPException(500, "image processing failed")

    background_tasks.add_task(record_access, state.engine, slug)
    return Response(
        content=resolved.data,
        media_type=resolved.content_type,
        headers={"Cache-Control": resolved.cache_control},
    )


def serve_original(slug: str, request: Request, background_tasks: BackgroundTasks):
    """Serve /i/{slug} and /i/{slug}.webp."""
    return _serve(request, background_tasks, slug, ORIGINAL)


def serve_sized(slug: str, size: str, request: Request, background_tasks: BackgroundTasks):
    """Serve /i/{slug}/{size}[.webp]."""
    return _serve(request, background_tasks, slug, size)


def upload(request: Request, file: UploadFile = File(...)):
    """Validate an upload, store every variant and return their URLs."""
    state = request.app.state
    settings = state.settings
    data = file.file.read(settings.max_file_size + 1)
    try:
        mime_type = validate_and_detect(data, settings.max_file_size)
    except FileTooLargeError:
        raise HTTPException(413, "file too large")
    except InvalidFormatError:
        raise HTTPException(400, "invalid image format")

    try:
        results = process_variants(data)
    except TranscodeError as e:
        logger.error("process error name=%s: %s", file.filename, e)
        raise HTTPException(500, "image processing failed")

    slug = _unique_slug(state.engine)
    try:
        _save_variants(state.store, slug, results)
    except OSError as e:
        logger.error("save error slug=%s: %s", slug, e)
        state.store.delete(slug)
        raise HTTPException(500, "storage error")

    original = results[0]
    edit_token = secrets.token_hex(16)
    img = Image(
        slug=slug,
        original_name=file.filename or "",
        mime_type=mime_type,
        file_size=sum(len(r.data) for r in results),
        width=original.width,
        height=original.height,
        edit_token=edit_token,
    )
    try:
        with get_session(state.engine) as s:
            s.add(img)
            s.commit()
    except SQLAlchemyError as e:
        logger.error("db error slug=%s: %s", slug, e)
        state.store.delete(slug)
        raise HTTPException(500, "database error")

    base_url = settings.BASE_URL or str(request.base_url).rstrip("/")
    sizes = {
        r.name: (
            f"{base_url}/i/{slug}.webp"
            if r.name == ORIGINAL
            else f"{base_url}/i/{slug}/{r.name}.webp"
        )
        for r in results
    }
    logger.info("uploaded slug=%s name=%s mime=%s", slug, file.filename, mime_type)
    return {"slug": slug, "url": sizes[ORIGINAL], "sizes": sizes, "edit_token": edit_token}


def edit_image(
    slug: str,
    request: Request,
    edit_token: str = Form(...),
    rotation: int = Form(0),
    flip_h: bool = Form(False),
    flip_v: bool = Form(False),
    crop_x: int = Form(0),
    crop_y: int = Form(0),
    crop_w: int = Form(0),
    crop_h: int = Form(0),
):
    """Rotate/flip/crop the original and regenerate every variant.

    Rewriting the original moves its mtime forward, which invalidates
    all cached sizes for the slug.
    """
    state = request.app.state
    _authorize(state.engine, slug, edit_token)
    params = TransformParams(
        rotation=rotation,
        flip_h=flip_h,
        flip_v=flip_v,
        crop_x=crop_x,
        crop_y=crop_y,
        crop_w=crop_w,
        crop_h=crop_h,
    )
    if not params.has_transforms():
        raise HTTPException(400, "no transforms")

    store: OriginStore = state.store
    try:
        data = store.read_origin(slug)
    except NotFoundError:
        raise HTTPException(404, "File missing on disk")
    try:
        results = process_with_transform(data, params)
    except TranscodeError as e:
        logger.error("edit error slug=%s: %s", slug, e)
        raise HTTPException(500, "image processing failed")

    if not store.has_backup(slug):
        store.save_backup(slug)
    _save_variants(store, slug, results)
    original = results[0]
    update_image(
        state.engine,
        slug,
        width=original.width,
        height=original.height,
        file_size=sum(len(r.data) for r in results),
        edited=True,
    )
    logger.info("edited slug=%s %s", slug, params)
    return {"slug": slug, "width": original.width, "height": original.height}


def restore_image(slug: str, request: Request, edit_token: str = Form(...)):
    """Put the pre-edit original back and regenerate the variants from it."""
    state = request.app.state
    _authorize(state.engine, slug, edit_token)
    store: OriginStore = state.store
    if not store.has_backup(slug):
        raise HTTPException(404, "No backup")
    try:
        results = process_variants(store.read_backup(slug))
    except TranscodeError as e:
        logger.error("restore error slug=%s: %s", slug, e)
        raise HTTPException(500, "image processing failed")

    _save_variants(store, slug, [r for r in results if r.name != ORIGINAL])
    store.restore_from_backup(slug)
    original = results[0]
    update_image(state.engine, slug, width=original.width, height=original.height, edited=False)
    logger.info("restored slug=%s", slug)
    return {"slug": slug, "width": original.width, "height": original.height}


def delete_image(slug: str, request: Request, edit_token: str = Query(...)):
    """Remove an image's files and row. Cached sizes are left for the janitor."""
    state = request.app.state
    _authorize(state.engine, slug, edit_token)
    state.store.delete(slug)
    delete_image_row(state.engine, slug)
    return {"deleted": slug}


def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "disk_usage_gb": total_size(state.engine) / (1024 * 1024 * 1024),
        "resizes_in_flight": state.coordinator.in_flight(),
    }

