# app/crud/student_crud.py
from typing import List
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.student_model import Student


def get_all_students(db: Session, skip: int = 0, limit: int = 100) -> List[Student]:
    stmt = select(Student).order_by(Student.student_id).offset(skip).limit(limit)
    return list(db.execute(stmt).scalars().all())
