"""
Import / export API: .xlsx workbook and its JSON equivalent
"""
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.import_export import (
    ExportDataUseCase,
    ImportDataUseCase,
    ImportPayload,
)
from smoketrackr.application.workbook import WorkbookFormatError
from smoketrackr.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1", tags=["import-export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# === Request/Response models ===

# Отсутствующие поля не дают 422: такие строки считаются skipped / invalid
class ProductRow(BaseModel):
    name: str | None = None
    product_type: str | None = None
    flavor_detail: str | None = None


class PurchaseRow(BaseModel):
    product_name: str | None = None
    purchase_date: Any = None  # datetime, ISO string or serial day count
    time: Any = None
    quantity: Any = None
    price_per_item: Any = None


class ConsumptionRow(BaseModel):
    product_name: str | None = None
    consumption_date: Any = None
    time: Any = None
    quantity: Any = None


class ImportRequest(BaseModel):
    products: list[ProductRow] = []
    purchases: list[PurchaseRow] = []
    consumption: list[ConsumptionRow] = []
    monthly_budget: Any = None


# === Endpoints ===

@router.get("/export")
def export_workbook(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Скачать все данные одним .xlsx файлом"""
    result = ExportDataUseCase(db).execute(user.id)
    return Response(
        content=result.content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.get("/export/json")
def export_json(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ExportDataUseCase(db).collect(user.id).as_dict()


@router.post("/import")
def import_workbook(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Загрузить .xlsx (повторная загрузка того же файла ничего не дублирует)"""
    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    try:
        report = ImportDataUseCase(db).execute_workbook(user.id, content)
    except WorkbookFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return report.as_dict()


@router.post("/import/json")
def import_json(
    req: ImportRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Импорт строк, уже разобранных клиентом"""
    payload = ImportPayload(
        products=[row.model_dump() for row in req.products],
        purchases=[row.model_dump() for row in req.purchases],
        consumption=[row.model_dump() for row in req.consumption],
        monthly_budget=req.monthly_budget,
    )
    return ImportDataUseCase(db).execute(user.id, payload).as_dict()
