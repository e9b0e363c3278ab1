from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from . import storage
from .config import load_config
from .errors import DuplicateName, InvalidArgument, NotFound, RecipeBoxError, StoreError
from .logs import setup_logging
from .models import Recipe, RecipeInput, RecipeSummary, RecipeTagsUpdate, Tag, TagCreate, TagNode
from .search import parse_tag_list

ERROR_STATUS = {
    InvalidArgument: status.HTTP_400_BAD_REQUEST,
    DuplicateName: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    StoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = load_config()
    setup_logging(config.log_level, config.log_format)
    storage.configure(config.database_path, config.busy_timeout)
    storage.init_db(seed_default_tags=config.seed_default_tags)
    app.state.config = config
    logger.info("RecipeBox ready, database at {}", config.database_path)
    yield


app = FastAPI(title="RecipeBox", lifespan=lifespan)


def _status_for(exc: RecipeBoxError) -> int:
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(RecipeBoxError)
async def _recipebox_error_handler(request: Request, exc: RecipeBoxError) -> JSONResponse:
    code = _status_for(exc)
    if code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"error": str(exc)})


@app.get("/api/tags", response_model=List[TagNode])
def list_tags() -> List[TagNode]:
    return storage.list_tag_tree()


@app.post("/api/tags", response_model=Tag, status_code=status.HTTP_201_CREATED)
def create_tag(payload: TagCreate) -> Tag:
    return storage.create_tag(payload.name, payload.parent_tag_id)


@app.get("/api/tags/{tag_id}/recipes", response_model=List[RecipeSummary])
def tag_usage(tag_id: str) -> List[RecipeSummary]:
    return storage.list_tag_usage(tag_id)


@app.delete("/api/tags/{tag_id}")
def delete_tag(tag_id: str) -> Dict[str, Any]:
    report = storage.delete_tag(tag_id)
    return {"message": "Tag deleted successfully", **report.model_dump()}


@app.get("/api/recipes", response_model=List[Recipe])
def list_recipes() -> List[Recipe]:
    return storage.list_recipes()


@app.post("/api/recipes", status_code=status.HTTP_201_CREATED)
def create_recipe(payload: RecipeInput) -> Dict[str, Any]:
    recipe_id = storage.create_recipe(payload)
    return {"id": recipe_id, "message": "Recipe created successfully"}


@app.get("/api/recipes/{recipe_id}", response_model=Recipe)
def get_recipe(recipe_id: str) -> Recipe:
    return storage.get_recipe(recipe_id)


@app.put("/api/recipes/{recipe_id}")
def update_recipe(recipe_id: str, payload: RecipeInput) -> Dict[str, str]:
    storage.update_recipe(recipe_id, payload)
    return {"message": "Recipe updated successfully"}


@app.put("/api/recipes/{recipe_id}/tags", response_model=Recipe)
def replace_recipe_tags(recipe_id: str, payload: RecipeTagsUpdate) -> Recipe:
    return storage.set_recipe_tags(recipe_id, payload.tag_ids)


@app.delete("/api/recipes/{recipe_id}")
def delete_recipe(recipe_id: str) -> Dict[str, str]:
    storage.delete_recipe(recipe_id)
    return {"message": "Recipe deleted successfully"}


@app.get("/api/search", response_model=List[Recipe])
def search(q: Optional[str] = None, tags: Optional[str] = None) -> List[Recipe]:
    return storage.search_recipes(q, parse_tag_list(tags))
