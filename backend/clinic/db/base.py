from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base


class Doctor(Base):
    """Doctor model"""

    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    unique_id_number: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True
    )
    is_general_practitioner: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Identity-provider subject of the doctor's user account
    external_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}')>"


class Patient(Base):
    """Patient model"""

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    egn: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    external_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )
    last_insurance_payment_date: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True
    )
    general_practitioner_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("doctors.id"), nullable=True, index=True
    )

    general_practitioner: Mapped[Optional["Doctor"]] = relationship(
        "Doctor", foreign_keys=[general_practitioner_id]
    )

    def __repr__(self):
        return f"<Patient(id={self.id}, name='{self.name}')>"


class Diagnosis(Base):
    __tablename__ = "diagnoses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Visit(Base):
    """Visit model. One row per booked doctor slot."""

    __tablename__ = "visits"
    __table_args__ = (
        UniqueConstraint(
            "doctor_id", "visit_date", "visit_time", name="uq_visits_doctor_slot"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    visit_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    visit_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="SCHEDULED", index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id"), nullable=False, index=True
    )
    doctor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("doctors.id"), nullable=False, index=True
    )
    diagnosis_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("diagnoses.id"), nullable=True, index=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    # Relationships (ORM navigation)
    patient: Mapped["Patient"] = relationship("Patient", foreign_keys=[patient_id])
    doctor: Mapped["Doctor"] = relationship("Doctor", foreign_keys=[doctor_id])
    diagnosis: Mapped[Optional["Diagnosis"]] = relationship(
        "Diagnosis", foreign_keys=[diagnosis_id]
    )
    # Owned children follow the visit: replaced rows are deleted
    treatment: Mapped[Optional["Treatment"]] = relationship(
        "Treatment",
        back_populates="visit",
        uselist=False,
        cascade="all, delete-orphan",
    )
    sick_leave: Mapped[Optional["SickLeave"]] = relationship(
        "SickLeave",
        back_populates="visit",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return (
            f"<Visit(id={self.id}, visit_date={self.visit_date}, "
            f"visit_time={self.visit_time}, doctor_id={self.doctor_id}, "
            f"status={self.status})>"
        )


class Treatment(Base):
    __tablename__ = "treatments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    visit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("visits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    visit: Mapped["Visit"] = relationship("Visit", back_populates="treatment")
    medicines: Mapped[List["Medicine"]] = relationship(
        "Medicine",
        back_populates="treatment",
        cascade="all, delete-orphan",
        order_by="Medicine.position",
    )


class Medicine(Base):
    __tablename__ = "medicines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    dosage: Mapped[str] = mapped_column(String(50), nullable=False)
    frequency: Mapped[str] = mapped_column(String(50), nullable=False)
    # Keeps prescription order stable across reloads
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    treatment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("treatments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    treatment: Mapped["Treatment"] = relationship(
        "Treatment", back_populates="medicines"
    )


class SickLeave(Base):
    __tablename__ = "sick_leaves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    visit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("visits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    visit: Mapped["Visit"] = relationship("Visit", back_populates="sick_leave")
