from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from tutorhub.core.auth import TEACHER_ROLES, TokenData, require_roles
from tutorhub.core.clock import Clock, get_clock
from tutorhub.core.database import get_db
from tutorhub.models.schemas import ReportFilters
from tutorhub.services.reports import build_teacher_report

router = APIRouter()


@router.get("/teacher")
def teacher_report(filters: ReportFilters = Depends(), user: TokenData = Depends(require_roles(*TEACHER_ROLES)),
                   db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return jsonable_encoder(build_teacher_report(db, user.sub, filters, clock=clock))
