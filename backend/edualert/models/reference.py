"""
Static dimension tables. Schools join Region and SchoolLevel and are the
pivot for subscription matching.
"""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from edualert.db.base import Base


class Region(Base):
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)


class SchoolLevel(Base):
    __tablename__ = "school_levels"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)


class School(Base):
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True, unique=True)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=False, index=True)
    school_level_id = Column(Integer, ForeignKey("school_levels.id"), nullable=False, index=True)

    region = relationship("Region", lazy="joined")
    school_level = relationship("SchoolLevel", lazy="joined")
