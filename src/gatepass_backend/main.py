from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .cache_store import CacheStoreError
from .configuration import get_settings
from .database import GatePassDatabase
from .middleware import RequestLoggingMiddleware
from .models import DataResult, Destination, DestinationWriteResult, GatePass, WriteResult
from .pdf_engine import PdfRenderError
from .pdf_service import GatePassPdfService, MissingIdentifierError, build_pdf_service
from .utils import etag_matches, pdf_filename

settings = get_settings()
logging.basicConfig(level=settings.logging.level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

database = GatePassDatabase(Path(settings.database.path))
pdf_service = build_pdf_service(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Shutting down PDF engine")
    await pdf_service.close()


app = FastAPI(title="Gate Pass API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors.allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


def get_database() -> GatePassDatabase:
    return database


def get_pdf_service() -> GatePassPdfService:
    return pdf_service


async def warm_pdf(gatepass_id: str, db: GatePassDatabase, service: GatePassPdfService) -> None:
    """Render the PDF from the stored snapshot after a write; failures only get logged."""
    try:
        latest = await asyncio.to_thread(db.get, gatepass_id)
        if latest is not None:
            await service.ensure_pdf(latest)
    except Exception:
        logger.exception(f"PDF generation failed for gate pass {gatepass_id}")


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/gatepass", response_model=DataResult)
def list_gatepasses(db: GatePassDatabase = Depends(get_database)) -> DataResult:
    return DataResult(data=db.list())


@app.get("/gatepass/{gatepass_id}", response_model=DataResult)
def get_gatepass(gatepass_id: str, db: GatePassDatabase = Depends(get_database)) -> DataResult:
    gatepass = db.get(gatepass_id)
    if not gatepass:
        raise HTTPException(status_code=404, detail="Gate pass not found")
    return DataResult(data=gatepass)


@app.post("/gatepass", response_model=WriteResult, status_code=201)
def create_gatepass(
    gatepass: GatePass,
    background_tasks: BackgroundTasks,
    db: GatePassDatabase = Depends(get_database),
    service: GatePassPdfService = Depends(get_pdf_service),
) -> WriteResult:
    if not db.create(gatepass.model_dump(mode="json", by_alias=True)):
        raise HTTPException(status_code=409, detail="Gate pass already exists")

    background_tasks.add_task(warm_pdf, gatepass.id, db, service)
    return WriteResult(success=True, message="Gate pass created successfully", gate_pass_id=gatepass.id)


@app.patch("/gatepass", response_model=WriteResult)
def update_gatepass(
    gatepass: GatePass,
    background_tasks: BackgroundTasks,
    db: GatePassDatabase = Depends(get_database),
    service: GatePassPdfService = Depends(get_pdf_service),
) -> WriteResult:
    if not db.update(gatepass.model_dump(mode="json", by_alias=True)):
        raise HTTPException(status_code=404, detail="Gate pass not found")

    background_tasks.add_task(warm_pdf, gatepass.id, db, service)
    return WriteResult(success=True, message="Gate pass updated successfully", gate_pass_id=gatepass.id)


@app.delete("/gatepass/{gatepass_id}", response_model=WriteResult)
def delete_gatepass(
    gatepass_id: str,
    db: GatePassDatabase = Depends(get_database),
    service: GatePassPdfService = Depends(get_pdf_service),
) -> WriteResult:
    if not db.delete(gatepass_id):
        raise HTTPException(status_code=404, detail="Gate pass not found")

    try:
        service.store.delete(gatepass_id)
    except CacheStoreError as exc:
        logger.warning(f"Cached PDF for deleted gate pass {gatepass_id} was not removed: {exc}")
    return WriteResult(success=True, message="Gate pass deleted successfully", gate_pass_id=gatepass_id)


@app.post("/dest/create", response_model=DestinationWriteResult, status_code=201)
def create_destination(
    destination: Destination,
    db: GatePassDatabase = Depends(get_database),
) -> DestinationWriteResult:
    destination_id = db.create_destination(destination.destination_name, destination.destination_code)
    if destination_id is None:
        raise HTTPException(status_code=409, detail="Destination code already exists")

    return DestinationWriteResult(
        success=True,
        message="Destination created successfully",
        destination_id=destination_id,
    )


@app.get("/dest", response_model=DataResult)
def list_destinations(db: GatePassDatabase = Depends(get_database)) -> DataResult:
    return DataResult(data=db.list_destinations())


@app.get("/gatepass/{gatepass_id}/pdf")
async def download_gatepass_pdf(
    gatepass_id: str,
    request: Request,
    db: GatePassDatabase = Depends(get_database),
    service: GatePassPdfService = Depends(get_pdf_service),
) -> Response:
    latest = await asyncio.to_thread(db.get, gatepass_id)
    if not latest:
        raise HTTPException(status_code=404, detail="Gate pass not found")

    try:
        result = await service.ensure_pdf(latest)
    except MissingIdentifierError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PdfRenderError as exc:
        logger.error(f"PDF rendering failed for gate pass {gatepass_id}: {exc}")
        raise HTTPException(status_code=502, detail="PDF rendering failed") from exc
    except CacheStoreError as exc:
        logger.error(f"PDF cache unavailable for gate pass {gatepass_id}: {exc}")
        raise HTTPException(status_code=503, detail="PDF cache unavailable") from exc

    etag_header = f'"{result.etag}"'
    if etag_matches(request.headers.get("if-none-match"), result.etag):
        return Response(status_code=304, headers={"ETag": etag_header})

    return Response(
        content=result.pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="{pdf_filename(gatepass_id)}"',
            "ETag": etag_header,
            "Cache-Control": "private, max-age=0",
        },
    )
