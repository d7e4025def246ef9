from sqlalchemy import Column, Integer, Float, String, Date, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base

class WaterBody(Base):
    __tablename__ = "water_bodies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    body_type = Column(String, nullable=False, default="freshwater")

    tests = relationship("WaterTest", back_populates="water_body", cascade="all, delete-orphan")
    livestock = relationship("Livestock", back_populates="water_body", cascade="all, delete-orphan")
    tasks = relationship("MaintenanceTask", back_populates="water_body", cascade="all, delete-orphan")
    alerts = relationship("WaterTestAlert", back_populates="water_body", cascade="all, delete-orphan")

class WaterTest(Base):
    __tablename__ = "water_tests"

    id = Column(Integer, primary_key=True)
    water_body_id = Column(Integer, ForeignKey("water_bodies.id"), nullable=False, index=True)

    test_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    water_body = relationship("WaterBody", back_populates="tests")
    parameters = relationship("ParameterResult", back_populates="test", cascade="all, delete-orphan")

Index("idx_water_tests_body_date", WaterTest.water_body_id, WaterTest.test_date)

class ParameterResult(Base):
    __tablename__ = "test_parameters"

    id = Column(Integer, primary_key=True)
    test_id = Column(Integer, ForeignKey("water_tests.id"), nullable=False, index=True)

    parameter_name = Column(String, nullable=False)
    value = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    status = Column(String, nullable=True)  # optimal | acceptable | warning | danger | critical

    test = relationship("WaterTest", back_populates="parameters")

class Livestock(Base):
    __tablename__ = "livestock"

    id = Column(Integer, primary_key=True)
    water_body_id = Column(Integer, ForeignKey("water_bodies.id"), nullable=False, index=True)

    species = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    health_status = Column(String, nullable=False, default="healthy")

    water_body = relationship("WaterBody", back_populates="livestock")

class MaintenanceTask(Base):
    __tablename__ = "maintenance_tasks"

    id = Column(Integer, primary_key=True)
    water_body_id = Column(Integer, ForeignKey("water_bodies.id"), nullable=False, index=True)

    task_name = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending | completed | skipped
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    water_body = relationship("WaterBody", back_populates="tasks")

class WaterTestAlert(Base):
    __tablename__ = "water_test_alerts"

    id = Column(Integer, primary_key=True)
    water_body_id = Column(Integer, ForeignKey("water_bodies.id"), nullable=False, index=True)

    parameter_name = Column(String, nullable=False)
    message = Column(String, nullable=False)
    severity = Column(String, nullable=False)  # info | warning | critical
    is_dismissed = Column(Boolean, default=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    dismissed_at = Column(DateTime, nullable=True)

    water_body = relationship("WaterBody", back_populates="alerts")
