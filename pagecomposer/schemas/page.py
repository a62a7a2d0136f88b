# pagecomposer/schemas/page.py
# Pydantic: pages API wire format + editor requests/responses
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pagecomposer.utils.slugs import SLUG_PATTERN

PathSegment = Union[int, str]


def _id_to_str(v: Any) -> Any:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return str(v)
    return v


# ---------- Wire (pages API) ----------
class ComponentWire(BaseModel):
    """A page component as the pages API sends and receives it (content as a JSON string)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    page_id: Optional[int] = Field(None, alias="pageId")
    component_type: str = Field("Generic", alias="componentType")
    component_name: str = Field("", alias="componentName")
    content_json: Optional[str] = Field(None, alias="contentJson")
    order_index: int = Field(0, alias="orderIndex")
    is_visible: bool = Field(True, alias="isVisible")
    theme: int = 1

    @field_validator("content_json", mode="before")
    @classmethod
    def _stringify_content(cls, v):
        # some endpoints hand back the parsed object instead of the string
        if isinstance(v, (dict, list)):
            return json.dumps(v, ensure_ascii=False, separators=(",", ":"))
        return v

    @field_validator("component_name", mode="before")
    @classmethod
    def _none_name(cls, v):
        return "" if v is None else v


class PageWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str = ""
    slug: Optional[str] = None
    meta_title: Optional[str] = Field(None, alias="metaTitle")
    meta_description: Optional[str] = Field(None, alias="metaDescription")
    category_id: Optional[int] = Field(None, alias="categoryId")
    is_homepage: bool = Field(False, alias="isHomepage")
    components: List[ComponentWire] = []


class PageMetaWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    slug: str
    meta_title: Optional[str] = Field(None, alias="metaTitle")
    meta_description: Optional[str] = Field(None, alias="metaDescription")
    category_id: Optional[int] = Field(None, alias="categoryId")
    is_homepage: bool = Field(False, alias="isHomepage")


class SavePageItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    component_type: str = Field(..., alias="componentType")
    component_name: str = Field(..., alias="componentName")
    content_json: str = Field(..., alias="contentJson")
    order_index: int = Field(..., ge=1, alias="orderIndex")


class ReorderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    order_index: int = Field(..., ge=1, alias="orderIndex")


# ---------- Editor requests ----------
class FieldEditIn(BaseModel):
    path: List[PathSegment]
    value: Any = None


class ListItemIn(BaseModel):
    path: List[PathSegment]


class ListItemRemoveIn(BaseModel):
    path: List[PathSegment]
    index: int = Field(..., ge=0)


class ReorderIn(BaseModel):
    source_id: str
    destination_id: str

    @field_validator("source_id", "destination_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v):
        return _id_to_str(v)


class AddComponentIn(BaseModel):
    component_type: str = Field("Generic", min_length=1, max_length=128)
    component_name: Optional[str] = Field(None, max_length=200)
    content: Any = None
    is_visible: bool = True
    theme: Union[int, str] = 1


class VisibilityIn(BaseModel):
    is_visible: bool


class ThemeIn(BaseModel):
    theme: Union[int, str]


class PageMetaUpdate(BaseModel):
    # limits mirror the pages API UpdatePageDTO
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = Field(None, max_length=200, pattern=SLUG_PATTERN)
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)
    category_id: Optional[int] = None
    is_homepage: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")


# ---------- Editor responses ----------
class ComponentOut(BaseModel):
    id: str
    component_type: str
    component_name: str
    content: Any
    order_index: int
    is_visible: bool
    theme: int
    is_dirty: bool = False
    is_expanded: bool = False


class EditorStateOut(BaseModel):
    page_id: int
    name: str
    slug: str
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    category_id: Optional[int] = None
    is_homepage: bool = False
    components: List[ComponentOut]
    dirty_ids: List[str]
    dirty_count: int
    expanded_ids: List[str]
    recovered_ids: List[str]


class FormFieldOut(BaseModel):
    key: str
    label: str
    path: List[PathSegment]
    kind: str
    value: Any = None
    placeholder: Optional[str] = None
    add_label: Optional[str] = None
    children: List["FormFieldOut"] = []


class NotificationOut(BaseModel):
    level: Literal["info", "success", "warning", "error"]
    message: str
    event: str
    detail: dict = {}
    created_at: datetime
