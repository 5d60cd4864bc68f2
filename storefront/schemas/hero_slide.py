from pydantic import BaseModel, Field, model_validator
from typing import List, Optional


class HeroSlideCreate(BaseModel):
    image_id: Optional[int] = Field(None, gt=0)
    image_url: Optional[str] = Field(None, max_length=500)
    title: Optional[str] = Field(None, max_length=200)
    subtitle: Optional[str] = Field(None, max_length=300)
    button_text: Optional[str] = Field(None, max_length=50)
    link_url: Optional[str] = Field(None, max_length=500)
    is_internal_link: bool = True
    is_landscape_image: bool = True
    display_order: int = Field(0, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def validate_image(self):
        if self.image_id is None and not self.image_url:
            raise ValueError("Either image_id or image_url is required")
        return self


class HeroSlideUpdate(BaseModel):
    image_id: Optional[int] = Field(None, gt=0)
    image_url: Optional[str] = Field(None, max_length=500)
    title: Optional[str] = Field(None, max_length=200)
    subtitle: Optional[str] = Field(None, max_length=300)
    button_text: Optional[str] = Field(None, max_length=50)
    link_url: Optional[str] = Field(None, max_length=500)
    is_internal_link: Optional[bool] = None
    is_landscape_image: Optional[bool] = None
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class HeroSlideReorder(BaseModel):
    slide_ids: List[int] = Field(..., min_length=1)
