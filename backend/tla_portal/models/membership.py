from sqlalchemy import Column, String, Integer

from tla_portal.core.database import Base


class MembershipSequence(Base):
    """Last issued membership ordinal per two-digit year"""
    __tablename__ = "membership_sequence"

    year = Column(String(2), primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<MembershipSequence {self.year}:{self.last_number}>"
