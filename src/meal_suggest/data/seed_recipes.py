"""Seed recipe catalogue and ingredient price/nutrition table for InMemoryRecipeStore."""


def _ing(name: str, quantity: float, unit: str, cost: float) -> dict:
    return {"name": name, "quantity": quantity, "unit": unit, "estimated_cost": cost}


SEED_RECIPES: list[dict] = [
    {
        "recipe_id": "r-001",
        "name": "Lemon Herb Chicken with Roasted Vegetables",
        "description": "Sheet-pan chicken thighs with carrots and potatoes.",
        "cuisine": "mediterranean",
        "prep_minutes": 15,
        "cook_minutes": 35,
        "estimated_cost": 13.5,
        "servings": 4,
        "ingredients": [
            _ing("chicken thighs", 800, "g", 7.0),
            _ing("potatoes", 600, "g", 2.0),
            _ing("carrots", 300, "g", 1.0),
            _ing("lemon", 1, "piece", 0.6),
            _ing("olive oil", 3, "tbsp", 0.9),
            _ing("garlic", 3, "cloves", 0.4),
        ],
        "instructions": [
            "Heat the oven to 220C.",
            "Toss vegetables with oil, garlic and salt on a sheet pan.",
            "Add chicken, squeeze over lemon and roast 35 minutes.",
        ],
        "tags": ["gluten_free", "dairy_free", "family_friendly", "sheet_pan"],
        "allergens": [],
        "difficulty": "beginner",
        "nutrition": {"calories": 540, "protein_g": 38, "carbs_g": 36, "fat_g": 26, "fiber_g": 5},
        "popularity": 0.92,
    },
    {
        "recipe_id": "r-002",
        "name": "Vegetable Fried Rice",
        "description": "Quick fried rice with eggs, peas and carrots.",
        "cuisine": "chinese",
        "prep_minutes": 10,
        "cook_minutes": 12,
        "estimated_cost": 7.0,
        "servings": 4,
        "ingredients": [
            _ing("cooked rice", 600, "g", 1.5),
            _ing("eggs", 3, "piece", 1.0),
            _ing("frozen peas", 150, "g", 0.8),
            _ing("carrots", 150, "g", 0.5),
            _ing("soy sauce", 3, "tbsp", 0.5),
            _ing("spring onions", 4, "piece", 0.7),
        ],
        "instructions": [
            "Scramble the eggs in a hot wok and set aside.",
            "Stir-fry carrots and peas for 3 minutes.",
            "Add rice and soy sauce, fry until hot, fold in eggs and spring onions.",
        ],
        "tags": ["vegetarian", "dairy_free", "quick", "family_friendly"],
        "allergens": ["egg", "soy", "wheat"],
        "difficulty": "beginner",
        "nutrition": {"calories": 390, "protein_g": 13, "carbs_g": 62, "fat_g": 9, "fiber_g": 4},
        "popularity": 0.88,
    },
    {
        "recipe_id": "r-003",
        "name": "Peanut Noodle Stir-Fry",
        "description": "Noodles tossed in a peanut butter and lime sauce with crunchy vegetables.",
        "cuisine": "thai",
        "prep_minutes": 10,
        "cook_minutes": 10,
        "estimated_cost": 8.5,
        "servings": 4,
        "ingredients": [
            _ing("rice noodles", 400, "g", 2.2),
            _ing("peanut butter", 4, "tbsp", 1.0),
            _ing("lime", 1, "piece", 0.5),
            _ing("bell pepper", 2, "piece", 1.6),
            _ing("carrots", 200, "g", 0.7),
            _ing("soy sauce", 2, "tbsp", 0.4),
        ],
        "instructions": [
            "Soak the noodles according to the packet.",
            "Whisk peanut butter, lime juice, soy sauce and warm water into a sauce.",
            "Stir-fry the vegetables, add noodles and sauce and toss.",
        ],
        "tags": ["vegetarian", "vegan", "dairy_free", "quick"],
        "allergens": [],
        "difficulty": "beginner",
        "nutrition": {"calories": 470, "protein_g": 14, "carbs_g": 70, "fat_g": 15, "fiber_g": 5},
        "popularity": 0.81,
    },
    {
        "recipe_id": "r-004",
        "name": "Turkey Tacos",
        "description": "Seasoned ground turkey in corn tortillas with salsa.",
        "cuisine": "mexican",
        "prep_minutes": 10,
        "cook_minutes": 15,
        "estimated_cost": 11.0,
        "servings": 4,
        "ingredients": [
            _ing("ground turkey", 500, "g", 5.5),
            _ing("corn tortillas", 12, "piece", 2.0),
            _ing("tomatoes", 3, "piece", 1.2),
            _ing("onion", 1, "piece", 0.4),
            _ing("lettuce", 1, "head", 1.0),
            _ing("taco seasoning", 2, "tbsp", 0.9),
        ],
        "instructions": [
            "Brown the turkey with onion and seasoning.",
            "Warm the tortillas in a dry pan.",
            "Fill tortillas with turkey, chopped tomatoes and lettuce.",
        ],
        "tags": ["gluten_free", "dairy_free", "family_friendly", "quick"],
        "allergens": [],
        "difficulty": "beginner",
        "nutrition": {"calories": 450, "protein_g": 32, "carbs_g": 40, "fat_g": 17, "fiber_g": 6},
        "popularity": 0.86,
    },
    {
        "recipe_id": "r-005",
        "name": "Baked Salmon with Quinoa",
        "description": "Oven-baked salmon fillets over herbed quinoa and green beans.",
        "cuisine": "american",
        "prep_minutes": 10,
        "cook_minutes": 20,
        "estimated_cost": 18.0,
        "servings": 4,
        "ingredients": [
            _ing("salmon fillets", 4, "piece", 12.0),
            _ing("quinoa", 250, "g", 2.5),
            _ing("green beans", 300, "g", 2.0),
            _ing("lemon", 1, "piece", 0.6),
            _ing("olive oil", 2, "tbsp", 0.6),
        ],
        "instructions": [
            "Simmer quinoa for 15 minutes.",
            "Bake salmon at 200C for 12-15 minutes.",
            "Steam green beans and serve everything with lemon.",
        ],
        "tags": ["pescatarian", "gluten_free", "dairy_free", "high_protein"],
        "allergens": ["fish"],
        "difficulty": "intermediate",
        "nutrition": {"calories": 520, "protein_g": 36, "carbs_g": 40, "fat_g": 22, "fiber_g": 6},
        "popularity": 0.79,
    },
    {
        "recipe_id": "r-006",
        "name": "Chickpea and Spinach Curry",
        "description": "Mild coconut curry with chickpeas and spinach, served with rice.",
        "cuisine": "indian",
        "prep_minutes": 10,
        "cook_minutes": 25,
        "estimated_cost": 8.0,
        "servings": 4,
        "ingredients": [
            _ing("chickpeas", 800, "g", 1.8),
            _ing("coconut milk", 400, "ml", 1.5),
            _ing("spinach", 200, "g", 1.5),
            _ing("onion", 1, "piece", 0.4),
            _ing("curry paste", 2, "tbsp", 1.2),
            _ing("basmati rice", 300, "g", 1.2),
        ],
        "instructions": [
            "Soften the onion, stir in curry paste.",
            "Add chickpeas and coconut milk, simmer 15 minutes.",
            "Wilt in spinach and serve over rice.",
        ],
        "tags": ["vegetarian", "vegan", "gluten_free", "dairy_free"],
        "allergens": [],
        "difficulty": "beginner",
        "nutrition": {"calories": 560, "protein_g": 17, "carbs_g": 72, "fat_g": 22, "fiber_g": 11},
        "popularity": 0.83,
    },
    {
        "recipe_id": "r-007",
        "name": "Spaghetti Bolognese",
        "description": "Classic beef ragu with spaghetti and parmesan.",
        "cuisine": "italian",
        "prep_minutes": 15,
        "cook_minutes": 40,
        "estimated_cost": 12.0,
        "servings": 4,
        "ingredients": [
            _ing("spaghetti", 400, "g", 1.2),
            _ing("ground beef", 500, "g", 5.5),
            _ing("canned tomatoes", 800, "g", 1.6),
            _ing("onion", 1, "piece", 0.4),
            _ing("carrots", 100, "g", 0.3),
            _ing("parmesan", 50, "g", 1.5),
        ],
        "instructions": [
            "Brown beef with onion and carrot.",
            "Add tomatoes and simmer 30 minutes.",
            "Cook spaghetti, toss with sauce and top with parmesan.",
        ],
        "tags": ["family_friendly", "classic"],
        "allergens": ["wheat", "gluten", "milk"],
        "difficulty": "intermediate",
        "nutrition": {"calories": 650, "protein_g": 35, "carbs_g": 75, "fat_g": 22, "fiber_g": 6},
        "popularity": 0.9,
    },
    {
        "recipe_id": "r-008",
        "name": "Black Bean Quesadillas",
        "description": "Crispy tortillas filled with black beans, corn and cheese.",
        "cuisine": "mexican",
        "prep_minutes": 10,
        "cook_minutes": 10,
        "estimated_cost": 7.5,
        "servings": 4,
        "ingredients": [
            _ing("flour tortillas", 8, "piece", 2.0),
            _ing("black beans", 400, "g", 1.0),
            _ing("sweetcorn", 200, "g", 0.8),
            _ing("cheddar cheese", 200, "g", 2.5),
            _ing("salsa", 150, "g", 1.2),
        ],
        "instructions": [
            "Mash half the beans and mix with the rest and the corn.",
            "Fill tortillas with beans and cheese, fold.",
            "Toast in a dry pan until crisp, serve with salsa.",
        ],
        "tags": ["vegetarian", "quick", "family_friendly"],
        "allergens": ["wheat", "gluten", "milk"],
        "difficulty": "beginner",
        "nutrition": {"calories": 520, "protein_g": 22, "carbs_g": 60, "fat_g": 20, "fiber_g": 10},
        "popularity": 0.84,
    },
    {
        "recipe_id": "r-009",
        "name": "Beef and Broccoli Stir-Fry",
        "description": "Tender beef strips with broccoli in a ginger garlic sauce.",
        "cuisine": "chinese",
        "prep_minutes": 15,
        "cook_minutes": 10,
        "estimated_cost": 14.0,
        "servings": 4,
        "ingredients": [
            _ing("beef sirloin", 500, "g", 8.0),
            _ing("broccoli", 400, "g", 2.0),
            _ing("ginger", 20, "g", 0.4),
            _ing("garlic", 3, "cloves", 0.4),
            _ing("soy sauce", 3, "tbsp", 0.5),
            _ing("jasmine rice", 300, "g", 1.2),
        ],
        "instructions": [
            "Slice beef thinly and marinate in soy sauce.",
            "Stir-fry beef in batches, then broccoli with ginger and garlic.",
            "Combine, glaze with remaining sauce and serve with rice.",
        ],
        "tags": ["dairy_free", "high_protein"],
        "allergens": ["soy", "wheat"],
        "difficulty": "intermediate",
        "nutrition": {"calories": 560, "protein_g": 36, "carbs_g": 58, "fat_g": 18, "fiber_g": 5},
        "popularity": 0.77,
    },
    {
        "recipe_id": "r-010",
        "name": "Mushroom Risotto",
        "description": "Creamy arborio rice with mushrooms and parmesan.",
        "cuisine": "italian",
        "prep_minutes": 10,
        "cook_minutes": 35,
        "estimated_cost": 10.0,
        "servings": 4,
        "ingredients": [
            _ing("arborio rice", 300, "g", 2.0),
            _ing("mushrooms", 400, "g", 3.0),
            _ing("vegetable stock", 1200, "ml", 1.2),
            _ing("onion", 1, "piece", 0.4),
            _ing("parmesan", 60, "g", 1.8),
            _ing("butter", 30, "g", 0.5),
        ],
        "instructions": [
            "Saute onion and mushrooms in butter.",
            "Toast rice, then add hot stock a ladle at a time for 25 minutes.",
            "Stir in parmesan and rest 2 minutes.",
        ],
        "tags": ["vegetarian", "gluten_free", "comfort"],
        "allergens": ["milk"],
        "difficulty": "advanced",
        "nutrition": {"calories": 480, "protein_g": 14, "carbs_g": 70, "fat_g": 14, "fiber_g": 3},
        "popularity": 0.7,
    },
]


SEED_CATALOGUE: list[dict] = [
    {"name": "chicken thighs", "unit_cost": 7.0, "nutrition": {"calories": 250, "protein_g": 26, "fat_g": 16}},
    {"name": "chicken breast", "unit_cost": 8.0, "nutrition": {"calories": 165, "protein_g": 31, "fat_g": 4}},
    {"name": "ground turkey", "unit_cost": 5.5, "nutrition": {"calories": 200, "protein_g": 27, "fat_g": 10}},
    {"name": "ground beef", "unit_cost": 5.5, "nutrition": {"calories": 250, "protein_g": 26, "fat_g": 17}},
    {"name": "beef sirloin", "unit_cost": 8.0, "nutrition": {"calories": 210, "protein_g": 30, "fat_g": 9}},
    {"name": "salmon fillets", "unit_cost": 12.0, "nutrition": {"calories": 230, "protein_g": 25, "fat_g": 14}},
    {"name": "eggs", "unit_cost": 1.0, "nutrition": {"calories": 70, "protein_g": 6, "fat_g": 5}},
    {"name": "tofu", "unit_cost": 2.5, "nutrition": {"calories": 90, "protein_g": 10, "fat_g": 5}},
    {"name": "chickpeas", "unit_cost": 1.8, "nutrition": {"calories": 160, "protein_g": 8, "carbs_g": 27, "fiber_g": 7}},
    {"name": "black beans", "unit_cost": 1.0, "nutrition": {"calories": 110, "protein_g": 7, "carbs_g": 20, "fiber_g": 8}},
    {"name": "rice", "unit_cost": 1.2, "nutrition": {"calories": 200, "protein_g": 4, "carbs_g": 44}},
    {"name": "quinoa", "unit_cost": 2.5, "nutrition": {"calories": 170, "protein_g": 6, "carbs_g": 30, "fiber_g": 3}},
    {"name": "spaghetti", "unit_cost": 1.2, "nutrition": {"calories": 200, "protein_g": 7, "carbs_g": 42, "fiber_g": 2}},
    {"name": "pasta", "unit_cost": 1.2, "nutrition": {"calories": 200, "protein_g": 7, "carbs_g": 42, "fiber_g": 2}},
    {"name": "rice noodles", "unit_cost": 2.2, "nutrition": {"calories": 190, "protein_g": 3, "carbs_g": 43}},
    {"name": "potatoes", "unit_cost": 2.0, "nutrition": {"calories": 130, "protein_g": 3, "carbs_g": 30, "fiber_g": 3}},
    {"name": "carrots", "unit_cost": 0.7, "nutrition": {"calories": 25, "carbs_g": 6, "fiber_g": 2}},
    {"name": "broccoli", "unit_cost": 2.0, "nutrition": {"calories": 35, "protein_g": 3, "carbs_g": 7, "fiber_g": 3}},
    {"name": "spinach", "unit_cost": 1.5, "nutrition": {"calories": 10, "protein_g": 1, "fiber_g": 1}},
    {"name": "bell pepper", "unit_cost": 0.8, "nutrition": {"calories": 25, "carbs_g": 6, "fiber_g": 2}},
    {"name": "tomatoes", "unit_cost": 1.2, "nutrition": {"calories": 20, "carbs_g": 4, "fiber_g": 1}},
    {"name": "onion", "unit_cost": 0.4, "nutrition": {"calories": 15, "carbs_g": 4}},
    {"name": "garlic", "unit_cost": 0.4, "nutrition": {"calories": 5}},
    {"name": "mushrooms", "unit_cost": 3.0, "nutrition": {"calories": 20, "protein_g": 3, "carbs_g": 3}},
    {"name": "olive oil", "unit_cost": 0.3, "nutrition": {"calories": 120, "fat_g": 14}},
    {"name": "butter", "unit_cost": 0.5, "nutrition": {"calories": 100, "fat_g": 11}},
    {"name": "cheddar cheese", "unit_cost": 2.5, "nutrition": {"calories": 110, "protein_g": 7, "fat_g": 9}},
    {"name": "parmesan", "unit_cost": 1.5, "nutrition": {"calories": 60, "protein_g": 5, "fat_g": 4}},
    {"name": "coconut milk", "unit_cost": 1.5, "nutrition": {"calories": 140, "fat_g": 14, "carbs_g": 3}},
    {"name": "peanut butter", "unit_cost": 1.0, "nutrition": {"calories": 95, "protein_g": 4, "fat_g": 8}},
    {"name": "soy sauce", "unit_cost": 0.5, "nutrition": {"calories": 5}},
    {"name": "lemon", "unit_cost": 0.6, "nutrition": {"calories": 5}},
    {"name": "lime", "unit_cost": 0.5, "nutrition": {"calories": 5}},
]
