import pytest

from nutriplan.schemas.recipe import IngredientInput
from nutriplan.services.recipe_helpers import (
    aggregate_ingredients,
    calculate_difficulty,
    calculate_prep_time,
    calculate_servings,
    convert_to_base_unit,
    get_calories_per_serving,
    normalize_ingredient_name,
)


def ingredient(name, quantity, unit):
    return IngredientInput(name=name, quantity=quantity, unit=unit)


class TestAggregation:
    def test_name_normalization(self):
        assert normalize_ingredient_name("  O   Tomate ") == "tomate"
        assert normalize_ingredient_name("Uma cebola") == "cebola"
        assert normalize_ingredient_name("ovos") == "ovos"

    def test_convert_to_base_unit(self):
        assert convert_to_base_unit(2, "kg") == (2000, "g")
        assert convert_to_base_unit(1.5, "L") == (1500, "ml")
        assert convert_to_base_unit(3, "xícara") == (3, "xícara")

    def test_same_ingredient_is_summed_across_units(self):
        result = aggregate_ingredients([
            ingredient("Farinha", 500, "g"),
            ingredient("farinha", 1, "kg"),
        ])

        assert len(result) == 1
        assert result[0].id == "farinha"
        assert result[0].quantity == 1.5
        assert result[0].unit == "kg"
        assert result[0].checked is True

    def test_small_amounts_stay_in_base_unit(self):
        result = aggregate_ingredients([ingredient("leite", 200, "ml"), ingredient("leite", 300, "ml")])

        assert (result[0].quantity, result[0].unit) == (500, "ml")

    def test_incompatible_units_are_kept_apart(self):
        result = aggregate_ingredients([
            ingredient("açúcar", 100, "g"),
            ingredient("açúcar", 2, "xícara"),
            ingredient("açúcar", 1, "xícara"),
        ])

        by_id = {item.id: item for item in result}
        assert by_id["açúcar"].quantity == 100
        assert by_id["açúcar_xícara"].quantity == 3
        assert by_id["açúcar_xícara"].unit == "xícara"

    def test_sorted_by_name(self):
        result = aggregate_ingredients([
            ingredient("tomate", 2, "unidade"),
            ingredient("Alho", 3, "dente"),
            ingredient("cebola", 1, "unidade"),
        ])

        assert [item.name for item in result] == ["Alho", "cebola", "tomate"]

    def test_empty_list(self):
        assert aggregate_ingredients([]) == []


class TestServings:
    @pytest.mark.parametrize("instructions,expected", [
        ("Rende 4 porções", 4),
        ("Serve: 6", 6),
        ("Rendimento 8", 8),
    ])
    def test_servings_from_instructions(self, instructions, expected):
        assert calculate_servings(instructions, 5000) == expected

    @pytest.mark.parametrize("total_calories,expected", [
        (0, 1),
        (200, 1),
        (900, 2),
        (2400, 4),
    ])
    def test_servings_from_calories(self, total_calories, expected):
        assert calculate_servings("", total_calories) == expected

    def test_calories_per_serving(self):
        assert get_calories_per_serving(1000, 3) == 333
        assert get_calories_per_serving(1001, 2) == 501
        assert get_calories_per_serving(750, 0) == 750


class TestPrepTime:
    @pytest.mark.parametrize("instructions,expected", [
        ("", "30 min"),
        ("Cozinhe por 15 minutos e descanse 5 min.", "20 min"),
        ("Asse por 1 hora.", "1h"),
        ("Asse por 1 hora e 30 minutos.", "1h 30min"),
        ("Misture.\nSirva.\n\nDecore.", "30 min"),
        ("Misture tudo.", "10 min"),
    ])
    def test_prep_time(self, instructions, expected):
        assert calculate_prep_time(instructions) == expected

    @pytest.mark.parametrize("prep_time,expected", [
        ("10 min", "Fácil"),
        ("20 min", "Fácil"),
        ("45 min", "Médio"),
        ("1h", "Médio"),
        ("1h 30min", "Difícil"),
        ("2h", "Difícil"),
        ("", "Médio"),
    ])
    def test_difficulty(self, prep_time, expected):
        assert calculate_difficulty(prep_time) == expected
