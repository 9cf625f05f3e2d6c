from typing import List, Optional

from sqlalchemy import select

from database.models import Employer
from database.repositories.base import BaseRepository


class EmployerRepository(BaseRepository):
    def get_by_id(self, employer_id: str) -> Optional[Employer]:
        stmt = select(Employer).where(Employer.id == employer_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_all(self) -> List[Employer]:
        stmt = select(Employer).order_by(Employer.created_at, Employer.id)
        return list(self.db.execute(stmt).scalars().all())
