from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from database import Base
from models.enums import CustomerStatus


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    branch_id = Column(String(64), nullable=True, index=True)
    region_id = Column(String(64), nullable=True, index=True)

    first_name = Column(String(128), nullable=True)
    middle_name = Column(String(128), nullable=True)
    surname = Column(String(128), nullable=True)
    mobile = Column(String(32), nullable=True, index=True)
    alternative_mobile = Column(String(32), nullable=True)
    id_number = Column(String(64), nullable=True, index=True)
    email = Column(String(256), nullable=True)
    postal_address = Column(String(256), nullable=True)
    marital_status = Column(String(32), nullable=True)
    residence_status = Column(String(32), nullable=True)

    business_name = Column(String(256), nullable=True)
    business_type = Column(String(128), nullable=True)
    business_location = Column(String(256), nullable=True)
    year_established = Column(Integer, nullable=True)
    daily_sales = Column(Numeric(14, 2), nullable=True)

    prequalified_amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(32), nullable=False, default=CustomerStatus.BM_REVIEW.value, index=True)
    form_status = Column(String(32), nullable=True)
    created_by = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    # Only moved by an RO correction; compared against created_at by the amendment queue
    edited_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    guarantors = relationship("Guarantor", back_populates="customer", order_by="Guarantor.created_at")
    next_of_kin = relationship("NextOfKin", back_populates="customer", uselist=False)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.middle_name, self.surname) if p)


class Guarantor(Base):
    __tablename__ = "guarantors"

    id = Column(String(64), primary_key=True, index=True)
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(128), nullable=True)
    surname = Column(String(128), nullable=True)
    mobile = Column(String(32), nullable=True)
    id_number = Column(String(64), nullable=True)
    relationship_type = Column(String(64), nullable=True)
    marital_status = Column(String(32), nullable=True)
    residence_status = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="guarantors")


class NextOfKin(Base):
    __tablename__ = "next_of_kin"

    id = Column(String(64), primary_key=True, index=True)
    # One next-of-kin per customer; edits upsert on this key
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, unique=True)
    first_name = Column(String(128), nullable=True)
    surname = Column(String(128), nullable=True)
    mobile = Column(String(32), nullable=True)
    relationship_type = Column(String(64), nullable=True)
    employment_status = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="next_of_kin")


class SecurityItem(Base):
    __tablename__ = "security_items"

    id = Column(String(64), primary_key=True, index=True)
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    owner = Column(String(16), nullable=False, default="borrower")
    item = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    estimated_value = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    images = relationship("SecurityItemImage", cascade="all, delete-orphan", order_by="SecurityItemImage.id")


class SecurityItemImage(Base):
    __tablename__ = "security_item_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    security_item_id = Column(String(64), ForeignKey("security_items.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(1024), nullable=False)


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(64), primary_key=True, index=True)
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = Column(String(64), nullable=False)
    document_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class BusinessImage(Base):
    __tablename__ = "business_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(1024), nullable=False)
