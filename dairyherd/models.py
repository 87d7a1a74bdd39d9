from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Date, Text, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base

class Farm(Base):
    __tablename__ = 'farms'
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    members = relationship("User", back_populates="farm")

class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True)
    firebase_uid = Column(String(128), unique=True, nullable=False)
    phone_number = Column(String(20), unique=True, nullable=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), nullable=True)
    role = Column(String(20)) # 'farm_owner', 'farm_manager', 'worker', 'viewer'
    created_at = Column(DateTime, default=datetime.utcnow)

    farm = relationship("Farm", back_populates="members")

class Animal(Base):
    __tablename__ = 'animals'
    __table_args__ = (UniqueConstraint('farm_id', 'tag_id'),)
    id = Column(Integer, primary_key=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), nullable=False)
    tag_id = Column(String(50), nullable=False) # Local Visual Tag
    breed = Column(String(50))
    gender = Column(String(10), nullable=False) # 'male', 'female'
    birth_date = Column(Date)
    production_status = Column(String(20)) # calf, heifer, served, lactating, dry, bull
    health_status = Column(String(30), default="healthy")

    # Breeding cycle
    service_date = Column(Date, nullable=True) # set while served
    expected_calving_date = Column(Date, nullable=True)
    dry_off_date = Column(Date, nullable=True)

    # Production
    last_milking_date = Column(Date, nullable=True)
    days_in_milk = Column(Integer, nullable=True)
    current_daily_production = Column(Float, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    breeding_records = relationship("BreedingRecord", back_populates="animal")

class AnimalCategory(Base):
    __tablename__ = 'animal_categories'
    id = Column(Integer, primary_key=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), nullable=False)
    name = Column(String(100), nullable=False)
    min_age_days = Column(Integer, nullable=True)
    max_age_days = Column(Integer, nullable=True) # NULL = no upper bound
    gender = Column(String(10), nullable=True) # NULL = any
    production_status = Column(String(20), nullable=True)
    characteristics = Column(JSON, default=dict) # lactating, pregnant, breeding_male, growth_phase
    sort_order = Column(Integer, default=0)

class FarmBreedingSettings(Base):
    __tablename__ = 'farm_breeding_settings'
    id = Column(Integer, primary_key=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), unique=True, nullable=False)

    minimum_breeding_age_months = Column(Integer, default=15)
    default_gestation = Column(Integer, default=280)
    days_pregnant_at_dryoff = Column(Integer, default=220)
    postpartum_breeding_delay_days = Column(Integer, default=60)
    default_cycle_interval = Column(Integer, default=21)
    pregnancy_check_days = Column(Integer, default=45)
    missed_heat_alert = Column(Integer, default=25)
    heat_retry_days = Column(Integer, default=21)
    diagnosis_interval = Column(Integer, default=45)
    cost_per_ai = Column(Float, nullable=True)
    alert_type = Column(JSON, default=lambda: ["app", "sms"])

    auto_schedule_pregnancy_check = Column(Boolean, default=True)
    auto_create_dry_off = Column(Boolean, default=True)
    auto_create_lactation = Column(Boolean, default=True)
    auto_create_next_event = Column(Boolean, default=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class BreedingRecord(Base):
    __tablename__ = 'breeding_records'
    id = Column(Integer, primary_key=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), nullable=False)
    animal_id = Column(Integer, ForeignKey('animals.id'), nullable=False)
    breeding_date = Column(Date, nullable=False)
    method = Column(String(20)) # 'ai', 'natural', 'et'
    sire = Column(String(100), nullable=True)
    technician = Column(String(100), nullable=True)
    pregnancy_confirmed_date = Column(Date, nullable=True)
    expected_calving_date = Column(Date, nullable=True)
    actual_calving_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    animal = relationship("Animal", back_populates="breeding_records")

class BreedingCalendarEvent(Base):
    __tablename__ = 'breeding_calendar'
    id = Column(Integer, primary_key=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), nullable=False)
    animal_id = Column(Integer, ForeignKey('animals.id'), nullable=False)
    event_type = Column(String(30), nullable=False) # dry_off, pregnancy_check, dry_off_scheduled, calving_expected, breeding_eligible
    scheduled_date = Column(Date, nullable=False)
    status = Column(String(20), default="scheduled")
    notes = Column(Text, nullable=True)

class AnimalStatusChange(Base):
    __tablename__ = 'animal_status_changes'
    id = Column(Integer, primary_key=True)
    farm_id = Column(Integer, ForeignKey('farms.id'), nullable=False)
    animal_id = Column(Integer, ForeignKey('animals.id'), nullable=False)
    old_status = Column(String(20))
    new_status = Column(String(20))
    change_type = Column(String(30), default="production_status")
    changed_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    reason = Column(Text, nullable=True)
    change_date = Column(DateTime, default=datetime.utcnow)
