from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront.db.base_class import Base


class HeroSlide(Base):
    __tablename__ = "hero_slides"

    id = Column(Integer, primary_key=True, index=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="SET NULL"), nullable=True)
    image_url = Column(String(500), nullable=True)  # external image, used when image_id is empty

    title = Column(String(200), nullable=True)
    subtitle = Column(String(300), nullable=True)
    button_text = Column(String(50), nullable=True)
    link_url = Column(String(500), nullable=True)
    is_internal_link = Column(Boolean, default=True, nullable=False)
    is_landscape_image = Column(Boolean, default=True, nullable=False)

    display_order = Column(Integer, default=0, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    image = relationship("Image")

    @property
    def resolved_image_url(self):
        if self.image is not None:
            return self.image.url
        return self.image_url
