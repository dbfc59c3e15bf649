"""Catalog import API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from unicat.config import get_settings
from unicat.dependencies import DbSession
from unicat.imports.exceptions import MissingColumnsError, ParseError
from unicat.imports.schemas import CatalogImportResult, ImportPreview
from unicat.imports.service import CatalogImportService, get_catalog_import_service
from unicat.imports.template import TEMPLATE_FILENAME, build_template_csv

router = APIRouter()


def get_service(db: DbSession) -> CatalogImportService:
    return get_catalog_import_service(db)


def _read_upload(file: UploadFile) -> bytes:
    """Read the upload, rejecting empty or oversized files."""
    max_bytes = get_settings().max_upload_bytes
    content = file.file.read(max_bytes + 1)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit",
        )
    return content


@router.get("/catalog/template")
async def download_template():
    """Download an example import file with every supported column."""
    return Response(
        content=build_template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


# Blocking routes are plain ``def`` so they run in the threadpool
@router.post("/catalog/preview", response_model=ImportPreview)
def preview_catalog_import(
    service: Annotated[CatalogImportService, Depends(get_service)],
    file: UploadFile = File(...),
):
    """Parse and validate a catalog file without writing anything.

    Returns:
        ImportPreview: Headers, row count, first rows and distinct entity counts.
    """
    content = _read_upload(file)
    try:
        return service.preview(file.filename or "", content)
    except (ParseError, MissingColumnsError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/catalog", response_model=CatalogImportResult)
def import_catalog(
    service: Annotated[CatalogImportService, Depends(get_service)],
    file: UploadFile = File(...),
):
    """Import faculties, departments and courses from a ``.csv`` or ``.xlsx`` file.

    Existing codes are left untouched, so re-uploading a file after a partial
    failure only retries what is still missing.

    Returns:
        CatalogImportResult: Created / failed counts and errors per entity type.
    """
    content = _read_upload(file)
    try:
        return service.run(file.filename or "", content)
    except (ParseError, MissingColumnsError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
