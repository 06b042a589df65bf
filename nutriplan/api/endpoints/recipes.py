from fastapi import APIRouter, Depends
from typing import List
from nutriplan.api.deps import get_current_user, get_recipe_ai_service
from nutriplan.schemas.user import AuthenticatedUser
from nutriplan.schemas.recipe import (
    AggregatedIngredient,
    AggregateIngredientsRequest,
    ExtractedRecipe,
    RecipeExtractRequest,
    RecipeImageRequest,
    RecipeImageResponse,
)
from nutriplan.services.recipe_ai import RecipeAIService
from nutriplan.services.recipe_helpers import aggregate_ingredients

router = APIRouter(tags=["Recipes"])

@router.post("/extract",
    response_model=ExtractedRecipe,
    description="Extract ingredients and calories from free recipe text",
    responses={
        200: {"description": "Structured recipe"},
        400: {"description": "Recipe text missing"},
        401: {"description": "Not authenticated"},
        502: {"description": "AI service failed or returned invalid data"}
    })
async def extract_recipe(
    request: RecipeExtractRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    recipe_ai_service: RecipeAIService = Depends(get_recipe_ai_service)
) -> ExtractedRecipe:
    """
    Send the recipe text to the configured AI provider and return:
    - name, instructions
    - ingredients with quantity, unit and calories
    - totalCalories (recomputed from the ingredients)
    - servings, caloriesPerServing, prepTime and difficulty estimates
    """
    return await recipe_ai_service.extract_recipe(request.text)

@router.post("/image",
    response_model=RecipeImageResponse,
    description="Generate an illustration for a recipe",
    responses={
        200: {"description": "Image URL or data URI"},
        400: {"description": "Recipe name missing"},
        401: {"description": "Not authenticated"}
    })
async def generate_recipe_image(
    request: RecipeImageRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    recipe_ai_service: RecipeAIService = Depends(get_recipe_ai_service)
) -> RecipeImageResponse:
    image_url = await recipe_ai_service.generate_image(request.recipe_name, request.recipe_description)
    return RecipeImageResponse(image_url=image_url)

@router.post("/aggregate-ingredients",
    response_model=List[AggregatedIngredient],
    description="Merge ingredients from several recipes into a shopping list"
)
async def aggregate_recipe_ingredients(
    request: AggregateIngredientsRequest,
    current_user: AuthenticatedUser = Depends(get_current_user)
) -> List[AggregatedIngredient]:
    return aggregate_ingredients(request.ingredients)
