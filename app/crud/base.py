from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
import uuid

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.errors import translate_storage_errors
from app.db.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        """
        CRUD object with default methods to Create, Read, Update, Delete (CRUD).

        **Parameters**

        * `model`: A SQLAlchemy model class
        """
        self.model = model

    def get(self, db: Session, id: uuid.UUID) -> Optional[ModelType]:
        with translate_storage_errors(db):
            return db.query(self.model).filter(self.model.id == id).first()

    def get_multi(self, db: Session, *, skip: int = 0, limit: int = 100) -> List[ModelType]:
        with translate_storage_errors(db):
            return db.query(self.model).offset(skip).limit(limit).all()

    def create(self, db: Session, *, db_obj: ModelType) -> ModelType:
        """Insert an already built (and validated) object."""
        with translate_storage_errors(db):
            db.add(db_obj)
            db.commit()
            db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: ModelType, obj_in: Union[UpdateSchemaType, Dict[str, Any], None] = None
    ) -> ModelType:
        if obj_in is None:
            update_data = {}
        elif isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        with translate_storage_errors(db):
            db.add(db_obj)
            db.commit()
            db.refresh(db_obj)
        return db_obj

    def remove(self, db: Session, *, id: uuid.UUID) -> Optional[ModelType]:
        obj = self.get(db, id)
        if obj is None:
            return None
        with translate_storage_errors(db):
            db.delete(obj)
            db.commit()
        return obj
