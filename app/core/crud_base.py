# app/core/crud_base.py

"""
공통 조회(Read) 작업을 위한 기본 클래스 모듈입니다.
ITM 수집 테이블은 외부 프로세스가 적재하므로, 이 API의 CRUD는 조회 전용입니다.
모든 메서드는 비동기(async) 환경에 맞게 작성되었습니다.
"""

import logging
from typing import Generic, List, Optional, Type, TypeVar, Any, Dict
from datetime import datetime

from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

ModelType = TypeVar("ModelType", bound=SQLModel)

logger = logging.getLogger(__name__)


class CRUDBase(Generic[ModelType]):
    """
    모든 조회 작업에 대한 기본 클래스를 정의합니다.
    """
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        기본 키를 기준으로 단일 레코드를 조회합니다.
        """
        return await db.get(self.model, id)

    async def get_filtered(
        self,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,  # 다중 속성 필터: {"attribute_name": "value"}
        date_range_field: Optional[str] = None,    # 기간 검색을 적용할 일시 필드 이름 (예: "serv_ts")
        start_at: Optional[datetime] = None,       # 기간 검색 시작 일시 (포함)
        end_at: Optional[datetime] = None,         # 기간 검색 종료 일시 (포함)
        order_by_field: Optional[str] = None,      # 정렬할 필드
        order_desc: bool = True,                   # 내림차순 정렬 여부
        skip: int = 0,
        limit: Optional[int] = 100
    ) -> List[ModelType]:
        """
        다중 속성 및 기간 검색 기능을 포함한 다중 조회.
        값이 None인 필터는 무시합니다.
        """
        query = select(self.model)
        conditions = []

        # 1. 다중 속성 필터링
        if filters:
            for attribute, value in filters.items():
                if value is None:
                    continue
                if hasattr(self.model, attribute):
                    column = getattr(self.model, attribute)
                    if isinstance(value, (list, tuple, set)):
                        conditions.append(column.in_(list(value)))
                    else:
                        conditions.append(column == value)
                else:
                    logger.warning("Model %s has no attribute '%s'", self.model.__name__, attribute)

        # 2. 기간 검색 필터링
        if date_range_field and hasattr(self.model, date_range_field):
            date_field = getattr(self.model, date_range_field)
            if start_at is not None:
                conditions.append(date_field >= start_at)
            if end_at is not None:
                conditions.append(date_field <= end_at)
        elif date_range_field:
            logger.warning("Model %s has no attribute '%s' for date range filtering.", self.model.__name__, date_range_field)

        # 모든 조건을 하나의 where 절로 합칩니다.
        if conditions:
            query = query.where(*conditions)

        # 3. 정렬 (선택 사항)
        if order_by_field and hasattr(self.model, order_by_field):
            if order_desc:
                query = query.order_by(getattr(self.model, order_by_field).desc())
            else:
                query = query.order_by(getattr(self.model, order_by_field))
        elif order_by_field:
            logger.warning("Model %s has no attribute '%s' for ordering.", self.model.__name__, order_by_field)

        # 4. 페이징
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await db.execute(query)
        return result.scalars().all()

