"""
Recipe AI Service

Extracts structured recipe data (ingredients, quantities, calories) from
free text and generates illustrations for recipes. Text extraction runs on
OpenAI or Google Gemini depending on RECIPE_AI_PROVIDER; images always use
the OpenAI Images API.
"""

from typing import Any, Dict, List, Optional
import json
import re

import google.generativeai as genai
from fastapi import HTTPException
from openai import AsyncOpenAI

from nutriplan.core.config import settings
from nutriplan.core.exceptions import AIConfigurationError, AIResponseError
from nutriplan.schemas.recipe import ExtractedIngredient, ExtractedRecipe
from nutriplan.services.recipe_helpers import (
    calculate_difficulty,
    calculate_prep_time,
    calculate_servings,
    get_calories_per_serving,
)
import logging

logger = logging.getLogger(__name__)

DEFAULT_RECIPE_NAME = "Nova Receita"

OPENAI_EXTRACTION_PROMPT = """
Analise o texto da receita abaixo e extraia os detalhes.
Force a resposta a ser APENAS um JSON puro, sem explicações ou markdown, usando este esquema EXATO:
{{
  "name": "nome da receita",
  "instructions": "passo a passo detalhado",
  "ingredients": [
    {{ "item": "nome do ingrediente", "quantidade": number, "unidade": "unidade", "calorias": number }}
  ]
}}

O campo "calorias" deve ser o TOTAL para a quantidade especificada de cada ingrediente.
Se o nome não estiver claro, crie um nome apropriado.
Se não houver instruções, deixe o campo "instructions" em branco.

TEXTO DA RECEITA:
{text}
"""

GEMINI_EXTRACTION_PROMPT = """
Você é um assistente especializado em nutrição e culinária. Analise o seguinte texto de receita e extraia as informações em formato JSON.

TEXTO DA RECEITA:
{text}

INSTRUÇÕES:
1. Extraia o nome da receita
2. Para cada ingrediente, extraia:
   - nome (normalizado, sem artigos)
   - quantidade (número)
   - unidade (g, kg, ml, L, unidade, xícara, colher, etc.)
   - caloriesPerUnit: estime as calorias por 100g ou por unidade (use conhecimento nutricional)
   - totalCalories: calcule (quantidade * caloriesPerUnit / 100) se for em gramas, ou (quantidade * caloriesPerUnit) se for unidade
3. Calcule o total de calorias da receita (soma de todos os ingredientes)

IMPORTANTE:
- Se a unidade for "xícara", converta para gramas (1 xícara ≈ 240ml ou 120-150g dependendo do ingrediente)
- Se a unidade for "colher de sopa", converta para gramas (1 colher ≈ 15ml ou 10-15g)
- Para ingredientes sem quantidade específica (ex: "sal a gosto"), use 0 calorias
- Normalize as unidades para: g, kg, ml, L, ou unidade

Retorne APENAS um objeto JSON válido no seguinte formato (sem markdown, sem explicações):
{{
  "name": "Nome da Receita",
  "ingredients": [
    {{
      "name": "farinha de trigo",
      "quantity": 500,
      "unit": "g",
      "caloriesPerUnit": 364,
      "totalCalories": 1820
    }}
  ],
  "totalCalories": 0,
  "instructions": "Modo de preparo extraído (opcional)"
}}
"""

IMAGE_PROMPT = """
Professional watercolor food illustration of A SINGLE PLATE of ready-to-eat {recipe_name}.
ONLY ONE PLATED DISH presentation, finished meal, viewed at a slight angle.
Delicate hand-painted watercolor style, soft organic brush strokes, visible paper texture, artistic and expressive.
Vibrant yet natural colors, subtle shading, painterly details.
Isolated on a clean white background.
NO photography, NO realism, NO 3D render.
NO pots, NO pans, NO raw ingredients, NO multiple dishes, NO multiple plates.
NO text, NO titles, NO labels.
Purely visual illustration, classic watercolor painting style.
"""

IMAGE_DESCRIPTION_HINT = "The dish is described as: {recipe_description}\n"

_FENCE_RE = re.compile(r"```(?:json)?\n?")


def strip_markdown_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def normalize_ingredient(raw: Dict[str, Any]) -> ExtractedIngredient:
    """
    Map one ingredient from either prompt schema.

    The OpenAI prompt answers with Portuguese keys and a total calorie
    count; caloriesPerUnit is then derived per 100 units of quantity.
    """
    if "item" in raw or "quantidade" in raw:
        quantity = _to_number(raw.get("quantidade"))
        total_calories = _to_number(raw.get("calorias"))
        calories_per_unit = (total_calories / quantity) * 100 if quantity > 0 else total_calories
        return ExtractedIngredient(
            name=str(raw.get("item") or ""),
            quantity=quantity,
            unit=str(raw.get("unidade") or ""),
            calories_per_unit=calories_per_unit,
            total_calories=total_calories
        )

    return ExtractedIngredient(
        name=str(raw.get("name") or ""),
        quantity=_to_number(raw.get("quantity")),
        unit=str(raw.get("unit") or ""),
        calories_per_unit=_to_number(raw.get("caloriesPerUnit")),
        total_calories=_to_number(raw.get("totalCalories"))
    )


def build_extracted_recipe(ai_data: Dict[str, Any]) -> ExtractedRecipe:
    raw_ingredients = ai_data.get("ingredients") if isinstance(ai_data, dict) else None
    if not isinstance(raw_ingredients, list):
        raise AIResponseError("Resposta da IA não contém uma lista de ingredientes válida.")

    ingredients: List[ExtractedIngredient] = [
        normalize_ingredient(item) for item in raw_ingredients if isinstance(item, dict)
    ]
    # Never trust the model's own sum
    total_calories = sum(ingredient.total_calories for ingredient in ingredients)

    instructions = ai_data.get("instructions") or ""
    if isinstance(instructions, list):
        instructions = "\n".join(str(step) for step in instructions)
    elif not isinstance(instructions, str):
        raise AIResponseError("Resposta da IA contém instruções inválidas.")

    name = ai_data.get("name") or DEFAULT_RECIPE_NAME
    if not isinstance(name, str):
        raise AIResponseError("Resposta da IA contém um nome de receita inválido.")

    servings = calculate_servings(instructions, total_calories)
    prep_time = calculate_prep_time(instructions)

    return ExtractedRecipe(
        name=name,
        ingredients=ingredients,
        total_calories=total_calories,
        instructions=instructions,
        servings=servings,
        calories_per_serving=get_calories_per_serving(total_calories, servings),
        prep_time=prep_time,
        difficulty=calculate_difficulty(prep_time)
    )


class RecipeAIService:
    def __init__(self, provider: Optional[str] = None):
        self.provider = (provider or settings.RECIPE_AI_PROVIDER).lower()

    async def extract_recipe(self, text: Optional[str]) -> ExtractedRecipe:
        """
        Turn free recipe text into a structured recipe.

        Raises:
            HTTPException: 400 for empty text, 500 when no AI key is configured,
                502 when the model fails or answers with unusable JSON
        """
        if not text or not text.strip():
            raise HTTPException(status_code=400, detail="Texto da receita é obrigatório.")

        try:
            if self.provider == "gemini":
                raw_text = await self._complete_with_gemini(text)
            else:
                raw_text = await self._complete_with_openai(text)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"AI provider {self.provider} failed to extract recipe: {e}")
            raise AIResponseError()

        if not raw_text:
            logger.error(f"AI provider {self.provider} returned an empty response")
            raise AIResponseError("A IA não retornou uma resposta válida.")

        try:
            ai_data = json.loads(strip_markdown_fences(raw_text))
        except json.JSONDecodeError:
            logger.error(f"Failed to parse AI response: {raw_text}")
            raise AIResponseError("Falha ao analisar resposta da IA.")

        recipe = build_extracted_recipe(ai_data)
        logger.info(f"Extracted recipe '{recipe.name}' with {len(recipe.ingredients)} ingredients")
        return recipe

    async def _complete_with_openai(self, text: str) -> Optional[str]:
        if not settings.OPENAI_API_KEY:
            logger.error("OPENAI_API_KEY not found in environment")
            raise AIConfigurationError()

        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        response = await client.responses.create(
            model=settings.OPENAI_TEXT_MODEL,
            input=OPENAI_EXTRACTION_PROMPT.format(text=text),
            store=True
        )
        return response.output_text

    async def _complete_with_gemini(self, text: str) -> Optional[str]:
        if not settings.GEMINI_API_KEY:
            logger.error("GEMINI_API_KEY not found in environment")
            raise AIConfigurationError()

        genai.configure(api_key=settings.GEMINI_API_KEY)
        model = genai.GenerativeModel(settings.GEMINI_MODEL)
        response = await model.generate_content_async(GEMINI_EXTRACTION_PROMPT.format(text=text))
        return response.text

    async def generate_image(self, recipe_name: Optional[str], recipe_description: Optional[str] = None) -> str:
        """
        Generate a watercolor illustration of the plated recipe.

        Returns:
            A hosted image URL, or a base64 ``data:`` URI when the API
            returns inline image data
        """
        if not recipe_name or not recipe_name.strip():
            raise HTTPException(status_code=400, detail="Nome da receita é obrigatório.")

        api_key = settings.IMAGE_API_KEY
        if not api_key:
            logger.error("No OpenAI key configured for image generation")
            raise AIConfigurationError()

        prompt = IMAGE_PROMPT.format(recipe_name=recipe_name)
        if recipe_description:
            prompt += IMAGE_DESCRIPTION_HINT.format(recipe_description=recipe_description)

        logger.info(f"Generating image for recipe: {recipe_name}")
        try:
            client = AsyncOpenAI(api_key=api_key)
            response = await client.images.generate(
                model=settings.OPENAI_IMAGE_MODEL,
                prompt=prompt,
                size=settings.OPENAI_IMAGE_SIZE
            )
        except Exception as e:
            logger.error(f"Error generating image for {recipe_name}: {e}")
            raise AIResponseError()

        if not response.data:
            raise AIResponseError("A IA não retornou uma imagem.")

        image = response.data[0]
        if image.url:
            return image.url
        if image.b64_json:
            return f"data:image/png;base64,{image.b64_json}"
        raise AIResponseError("A IA não retornou uma imagem.")
