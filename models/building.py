# models/building.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base


class ApartmentBuilding(Base):
     """
     ApartmentBuilding model - a managed building containing flats.
     Maps to existing 'apartment_buildings' table in the database.
     """
     __tablename__ = "apartment_buildings"

     id = Column(Integer, primary_key=True, autoincrement=True)
     name = Column(String(255), nullable=False)
     address = Column(String(500), nullable=True)

     # Uniform monthly fee used by the automatic monthly due run
     default_monthly_fee = Column(Numeric(12, 2), nullable=True)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     flats = relationship("Flat", back_populates="building")

     def __repr__(self):
          return f"<ApartmentBuilding(id={self.id}, name='{self.name}')>"
