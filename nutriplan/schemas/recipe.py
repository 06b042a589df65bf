from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class RecipeExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = Field(default=None, alias="recipeText")

class ExtractedIngredient(CamelModel):
    name: str
    quantity: float = 0
    unit: str = ""
    calories_per_unit: float = 0
    total_calories: float = 0

class ExtractedRecipe(CamelModel):
    name: str
    ingredients: List[ExtractedIngredient]
    total_calories: float
    instructions: str = ""
    servings: int = 1
    calories_per_serving: float = 0
    prep_time: str = "30 min"
    difficulty: str = "Médio"

class RecipeImageRequest(CamelModel):
    recipe_name: Optional[str] = None
    recipe_description: Optional[str] = None

class RecipeImageResponse(CamelModel):
    image_url: str

class IngredientInput(BaseModel):
    id: Optional[str] = None
    name: str
    quantity: float = 0
    unit: str = ""

class AggregateIngredientsRequest(BaseModel):
    ingredients: List[IngredientInput]

class AggregatedIngredient(BaseModel):
    id: str
    name: str
    quantity: float
    unit: str
    checked: bool = True
