"""Curated terminal-fallback meals: generic, popular and cheap to make.

Each entry lists the allergens it contains so the default strategy can filter
by the requester's allergen list and nothing else.
"""

DEFAULT_MEALS: list[dict] = [
    {
        "name": "Roast Chicken and Rice Bowl",
        "description": "Seasoned chicken over steamed rice with carrots and peas.",
        "prep_minutes": 10,
        "cook_minutes": 25,
        "estimated_cost": 9.0,
        "servings": 4,
        "ingredients": [
            {"name": "chicken breast", "quantity": 500, "unit": "g", "estimated_cost": 5.0},
            {"name": "rice", "quantity": 300, "unit": "g", "estimated_cost": 1.2},
            {"name": "carrots", "quantity": 200, "unit": "g", "estimated_cost": 0.7},
            {"name": "frozen peas", "quantity": 150, "unit": "g", "estimated_cost": 0.8},
            {"name": "olive oil", "quantity": 2, "unit": "tbsp", "estimated_cost": 0.3},
        ],
        "instructions": [
            "Season and pan-roast the chicken for 20 minutes.",
            "Steam the rice and vegetables.",
            "Slice chicken and serve over rice.",
        ],
        "tags": ["gluten_free", "dairy_free", "family_friendly"],
        "allergens": [],
        "cuisine": "american",
        "difficulty": "beginner",
        "nutrition": {"calories": 480, "protein_g": 36, "carbs_g": 55, "fat_g": 11, "fiber_g": 4},
    },
    {
        "name": "Tomato Basil Pasta",
        "description": "Pasta in a simple tomato and basil sauce.",
        "prep_minutes": 5,
        "cook_minutes": 15,
        "estimated_cost": 6.0,
        "servings": 4,
        "ingredients": [
            {"name": "pasta", "quantity": 400, "unit": "g", "estimated_cost": 1.2},
            {"name": "canned tomatoes", "quantity": 800, "unit": "g", "estimated_cost": 1.6},
            {"name": "garlic", "quantity": 2, "unit": "cloves", "estimated_cost": 0.3},
            {"name": "basil", "quantity": 1, "unit": "bunch", "estimated_cost": 1.5},
            {"name": "olive oil", "quantity": 2, "unit": "tbsp", "estimated_cost": 0.3},
        ],
        "instructions": [
            "Cook the pasta.",
            "Simmer tomatoes with garlic and oil for 10 minutes.",
            "Toss pasta with sauce and torn basil.",
        ],
        "tags": ["vegetarian", "vegan", "dairy_free", "quick"],
        "allergens": ["wheat", "gluten"],
        "cuisine": "italian",
        "difficulty": "beginner",
        "nutrition": {"calories": 430, "protein_g": 14, "carbs_g": 80, "fat_g": 8, "fiber_g": 6},
    },
    {
        "name": "Vegetable Omelette with Toast",
        "description": "Fluffy omelette with peppers and spinach.",
        "prep_minutes": 5,
        "cook_minutes": 10,
        "estimated_cost": 5.0,
        "servings": 4,
        "ingredients": [
            {"name": "eggs", "quantity": 8, "unit": "piece", "estimated_cost": 2.0},
            {"name": "bell pepper", "quantity": 1, "unit": "piece", "estimated_cost": 0.8},
            {"name": "spinach", "quantity": 100, "unit": "g", "estimated_cost": 0.8},
            {"name": "bread", "quantity": 4, "unit": "slice", "estimated_cost": 0.8},
        ],
        "instructions": [
            "Whisk eggs with salt.",
            "Cook vegetables briefly, pour in eggs and fold when set.",
            "Serve with toast.",
        ],
        "tags": ["vegetarian", "quick"],
        "allergens": ["egg", "wheat", "gluten"],
        "cuisine": "american",
        "difficulty": "beginner",
        "nutrition": {"calories": 330, "protein_g": 20, "carbs_g": 22, "fat_g": 17, "fiber_g": 3},
    },
    {
        "name": "Bean and Vegetable Chili",
        "description": "Hearty mild chili with beans, peppers and tomatoes.",
        "prep_minutes": 10,
        "cook_minutes": 30,
        "estimated_cost": 7.0,
        "servings": 4,
        "ingredients": [
            {"name": "black beans", "quantity": 800, "unit": "g", "estimated_cost": 2.0},
            {"name": "canned tomatoes", "quantity": 800, "unit": "g", "estimated_cost": 1.6},
            {"name": "bell pepper", "quantity": 2, "unit": "piece", "estimated_cost": 1.6},
            {"name": "onion", "quantity": 1, "unit": "piece", "estimated_cost": 0.4},
            {"name": "chili powder", "quantity": 1, "unit": "tbsp", "estimated_cost": 0.3},
        ],
        "instructions": [
            "Soften onion and peppers.",
            "Add spices, tomatoes and beans; simmer 25 minutes.",
            "Season and serve.",
        ],
        "tags": ["vegetarian", "vegan", "gluten_free", "dairy_free"],
        "allergens": [],
        "cuisine": "mexican",
        "difficulty": "beginner",
        "nutrition": {"calories": 380, "protein_g": 18, "carbs_g": 62, "fat_g": 4, "fiber_g": 18},
    },
    {
        "name": "Baked Potatoes with Tuna and Sweetcorn",
        "description": "Jacket potatoes topped with tuna and sweetcorn.",
        "prep_minutes": 5,
        "cook_minutes": 45,
        "estimated_cost": 6.5,
        "servings": 4,
        "ingredients": [
            {"name": "potatoes", "quantity": 4, "unit": "piece", "estimated_cost": 1.6},
            {"name": "canned tuna", "quantity": 2, "unit": "can", "estimated_cost": 3.0},
            {"name": "sweetcorn", "quantity": 200, "unit": "g", "estimated_cost": 0.8},
            {"name": "olive oil", "quantity": 1, "unit": "tbsp", "estimated_cost": 0.2},
        ],
        "instructions": [
            "Bake potatoes at 200C for 45 minutes.",
            "Mix tuna with sweetcorn.",
            "Split potatoes and fill.",
        ],
        "tags": ["pescatarian", "gluten_free", "dairy_free"],
        "allergens": ["fish"],
        "cuisine": "british",
        "difficulty": "beginner",
        "nutrition": {"calories": 410, "protein_g": 26, "carbs_g": 60, "fat_g": 6, "fiber_g": 6},
    },
]
