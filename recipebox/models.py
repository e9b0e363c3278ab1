"""Data models for RecipeBox."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class Tag(BaseModel):
    id: int
    name: str
    parent_tag_id: Optional[int] = None
    created_at: Optional[datetime] = None


class TagNode(Tag):
    """A tag together with its children, sorted by name."""

    children: List["TagNode"] = Field(default_factory=list)


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    parent_tag_id: Optional[int] = Field(None, gt=0)


class RecipeInput(BaseModel):
    """Fields accepted when creating or fully replacing a recipe."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    ingredients: str = Field(..., min_length=1)
    instructions: str = Field(..., min_length=1)
    prep_time: Optional[int] = Field(None, gt=0)
    cook_time: Optional[int] = Field(None, gt=0)
    servings: Optional[int] = Field(None, gt=0)
    tags: List[str] = Field(default_factory=list)


class Recipe(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    ingredients: str
    instructions: str
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    tags: List[Tag] = Field(default_factory=list)


class RecipeTagsUpdate(BaseModel):
    tag_ids: List[int] = Field(default_factory=list)


class RecipeSummary(BaseModel):
    id: int
    title: str
    description: Optional[str] = None


class PromotedTag(BaseModel):
    id: int
    name: str


class TagDeletionReport(BaseModel):
    """Impact of a tag deletion, captured before the delete was committed."""

    tag_id: int
    affected_recipes: List[RecipeSummary] = Field(default_factory=list)
    promoted_children: List[PromotedTag] = Field(default_factory=list)

    @computed_field
    @property
    def affected_recipe_count(self) -> int:
        return len(self.affected_recipes)

    @computed_field
    @property
    def promoted_child_count(self) -> int:
        return len(self.promoted_children)
