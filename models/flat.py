# models/flat.py
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from .base import Base


class Flat(Base):
     """
     Flat model - an individual rentable unit within a building.
     Maps to existing 'flats' table in the database.

     The tenant fields are a snapshot kept by the flat management screens;
     contracts carry their own tenant details.
     """
     __tablename__ = "flats"

     id = Column(Integer, primary_key=True, autoincrement=True)
     building_id = Column(
          Integer,
          ForeignKey("apartment_buildings.id", ondelete="CASCADE"),
          nullable=False,
          index=True
     )

     flat_number = Column(String(50), nullable=False)
     is_active = Column(Boolean, default=True, nullable=False)
     monthly_rent = Column(Numeric(12, 2), nullable=True)

     # Current tenant snapshot
     tenant_name = Column(String(255), nullable=True)
     tenant_email = Column(String(255), nullable=True)
     tenant_phone = Column(String(50), nullable=True)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     building = relationship("ApartmentBuilding", back_populates="flats")
     contracts = relationship("Contract", back_populates="flat")
     monthly_dues = relationship("MonthlyDue", back_populates="flat")
     payments = relationship("Payment", back_populates="flat")

     def __repr__(self):
          return f"<Flat(id={self.id}, flat_number='{self.flat_number}', building_id={self.building_id})>"
