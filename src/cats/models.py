from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Column,
    Date,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from database import Base, utcnow

GENDERS = ("male", "female")
CAT_TYPES = ("breeder", "kitten")
STATUSES = ("available", "reserved", "sold")

PARENT_FIELDS = ("father_id", "mother_id")
PEDIGREE_FIELDS = ("sire_name", "dam_name", "sire_registration", "dam_registration")


class Cat(Base):
    __tablename__ = "cats"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    gender = Column(Enum(*GENDERS, name="cat_gender"), nullable=False)
    type = Column(Enum(*CAT_TYPES, name="cat_type"), nullable=False, index=True)
    birth_date = Column(Date, nullable=True)
    status = Column(
        Enum(*STATUSES, name="cat_status"), nullable=False, default="available"
    )

    # Linked parents, kittens only
    father_id = Column(
        Integer, ForeignKey("cats.id", ondelete="SET NULL"), nullable=True, index=True
    )
    mother_id = Column(
        Integer, ForeignKey("cats.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # External pedigree, breeders only
    sire_name = Column(String(255), nullable=True)
    dam_name = Column(String(255), nullable=True)
    sire_registration = Column(String(255), nullable=True)
    dam_registration = Column(String(255), nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    photos = relationship(
        "Photo",
        back_populates="cat",
        cascade="all, delete-orphan",
        order_by=lambda: [Photo.position, Photo.id],
    )


class Photo(Base):
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    cat_id = Column(
        Integer, ForeignKey("cats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url = Column(String(1024), nullable=False)
    public_id = Column(String(255), nullable=True)
    cover = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    cat = relationship("Cat", back_populates="photos")
