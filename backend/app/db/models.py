"""SQLAlchemy ORM models for the vetted location catalog."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class City(Base):
    """City the catalog covers."""

    __tablename__ = "cities"

    city_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)

    locations: Mapped[list["CatalogLocation"]] = relationship(
        "CatalogLocation", back_populates="city"
    )


class Interest(Base):
    """Interest vocabulary used to tag catalog locations."""

    __tablename__ = "interests"

    interest_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)


class CatalogLocation(Base):
    """Vetted location or tour."""

    __tablename__ = "catalog_locations"
    __table_args__ = (Index("idx_catalog_city_category", "city_id", "category"),)

    location_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city_id: Mapped[int] = mapped_column(Integer, ForeignKey("cities.city_id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    price_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # admin | guide | import
    source: Mapped[str] = mapped_column(Text, nullable=False, default="import")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    city: Mapped["City"] = relationship("City", back_populates="locations")
    tags: Mapped[list["CatalogLocationTag"]] = relationship(
        "CatalogLocationTag", cascade="all, delete-orphan"
    )
    interests: Mapped[list["CatalogLocationInterest"]] = relationship(
        "CatalogLocationInterest", cascade="all, delete-orphan"
    )
    photos: Mapped[list["CatalogLocationPhoto"]] = relationship(
        "CatalogLocationPhoto",
        cascade="all, delete-orphan",
        order_by="CatalogLocationPhoto.position",
    )


class CatalogLocationTag(Base):
    __tablename__ = "catalog_location_tags"
    __table_args__ = (UniqueConstraint("location_id", "tag", name="uq_location_tag"),)

    tag_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_locations.location_id", ondelete="CASCADE"), nullable=False
    )
    tag: Mapped[str] = mapped_column(Text, nullable=False)


class CatalogLocationInterest(Base):
    __tablename__ = "catalog_location_interests"

    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_locations.location_id", ondelete="CASCADE"), primary_key=True
    )
    interest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("interests.interest_id", ondelete="CASCADE"), primary_key=True
    )


class CatalogLocationPhoto(Base):
    __tablename__ = "catalog_location_photos"

    photo_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_locations.location_id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
