"""Demo catalog used to seed an empty database.

Allergen, group and ingredient names are referenced by name; `init_db`
resolves them to ids and derives each recipe's denormalized allergen list
from its ingredients.
"""

ALLERGENS = [
    {"name": "Shrimp", "category": "Shellfish", "scientific_name": "Penaeus spp.", "is_fda_major": True},
    {"name": "Crab", "category": "Shellfish", "scientific_name": "Brachyura", "is_fda_major": True},
    {"name": "Lobster", "category": "Shellfish", "scientific_name": "Homarus spp.", "is_fda_major": True},
    {"name": "Dust Mite", "category": "Environmental", "scientific_name": "Dermatophagoides pteronyssinus"},
    {"name": "Cockroach", "category": "Environmental", "scientific_name": "Blattella germanica"},
    {"name": "Peanut", "category": "Legume", "scientific_name": "Arachis hypogaea", "is_fda_major": True},
    {"name": "Soy", "category": "Legume", "scientific_name": "Glycine max", "is_fda_major": True},
    {"name": "Lupin", "category": "Legume", "scientific_name": "Lupinus spp."},
    {"name": "Almond", "category": "Tree Nut", "scientific_name": "Prunus dulcis", "is_fda_major": True},
    {"name": "Walnut", "category": "Tree Nut", "scientific_name": "Juglans regia", "is_fda_major": True},
    {"name": "Cashew", "category": "Tree Nut", "scientific_name": "Anacardium occidentale", "is_fda_major": True},
    {"name": "Birch Pollen", "category": "Environmental", "scientific_name": "Betula verrucosa"},
    {"name": "Apple", "category": "Fruit", "scientific_name": "Malus domestica"},
    {"name": "Salmon", "category": "Fish", "scientific_name": "Salmo salar", "is_fda_major": True},
    {"name": "Cod", "category": "Fish", "scientific_name": "Gadus morhua", "is_fda_major": True},
    {"name": "Milk", "category": "Dairy", "scientific_name": None, "is_fda_major": True},
    {"name": "Egg", "category": "Egg", "scientific_name": None, "is_fda_major": True},
    {"name": "Wheat", "category": "Grain", "scientific_name": "Triticum aestivum", "is_fda_major": True},
    {"name": "Sesame", "category": "Seed", "scientific_name": "Sesamum indicum", "is_fda_major": True},
]

CROSS_REACTIVITY_GROUPS = [
    {
        "name": "Tropomyosin",
        "description": "Crustacean and arthropod tropomyosin family",
        "members": ["Shrimp", "Crab", "Lobster", "Dust Mite", "Cockroach"],
    },
    {
        "name": "Legume 7S/11S globulins",
        "description": "Peanut, soy and lupin storage proteins",
        "members": ["Peanut", "Soy", "Lupin"],
    },
    {
        "name": "Tree nut storage proteins",
        "description": "Common tree nut allergens",
        "members": ["Almond", "Walnut", "Cashew"],
    },
    {
        "name": "PR-10 (birch pollen food syndrome)",
        "description": "Bet v 1 homologues",
        "members": ["Birch Pollen", "Apple", "Almond"],
    },
    {
        "name": "Parvalbumin",
        "description": "Fish parvalbumin family",
        "members": ["Salmon", "Cod"],
    },
]

INGREDIENTS = [
    {"name": "Shrimp", "category": "Seafood", "allergens": [("Shrimp", "contains")]},
    {"name": "Crab Meat", "category": "Seafood", "allergens": [("Crab", "contains")]},
    {"name": "Salmon Fillet", "category": "Seafood", "allergens": [("Salmon", "contains")]},
    {"name": "Cod Fillet", "category": "Seafood", "allergens": [("Cod", "contains")]},
    {"name": "Chicken Breast", "category": "Meat", "allergens": []},
    {"name": "Beef Mince", "category": "Meat", "allergens": []},
    {"name": "Flour", "category": "Baking", "allergens": [("Wheat", "contains")]},
    {"name": "Spaghetti", "category": "Pantry", "allergens": [("Wheat", "contains"), ("Egg", "may_contain")]},
    {"name": "Rice", "category": "Pantry", "allergens": []},
    {"name": "Rice Noodles", "category": "Pantry", "allergens": []},
    {"name": "Oats", "category": "Pantry", "allergens": [("Wheat", "may_contain")]},
    {"name": "Milk", "category": "Dairy", "allergens": [("Milk", "contains")]},
    {"name": "Butter", "category": "Dairy", "allergens": [("Milk", "contains")]},
    {"name": "Parmesan", "category": "Dairy", "allergens": [("Milk", "contains")]},
    {"name": "Egg", "category": "Dairy", "allergens": [("Egg", "contains")]},
    {"name": "Peanut Butter", "category": "Pantry", "allergens": [("Peanut", "contains")]},
    {"name": "Soy Sauce", "category": "Condiments", "allergens": [("Soy", "contains"), ("Wheat", "contains")]},
    {"name": "Tofu", "category": "Produce", "allergens": [("Soy", "contains")]},
    {"name": "Almonds", "category": "Nuts", "allergens": [("Almond", "contains")]},
    {"name": "Tahini", "category": "Condiments", "allergens": [("Sesame", "contains")]},
    {"name": "Chickpeas", "category": "Pantry", "allergens": []},
    {"name": "Apple", "category": "Produce", "allergens": [("Apple", "contains")]},
    {"name": "Banana", "category": "Produce", "allergens": []},
    {"name": "Blueberries", "category": "Produce", "allergens": []},
    {"name": "Tomato", "category": "Produce", "allergens": []},
    {"name": "Onion", "category": "Produce", "allergens": []},
    {"name": "Garlic", "category": "Produce", "allergens": []},
    {"name": "Spinach", "category": "Produce", "allergens": []},
    {"name": "Lime", "category": "Produce", "allergens": []},
    {"name": "Coconut Milk", "category": "Pantry", "allergens": []},
    {"name": "Olive Oil", "category": "Pantry", "allergens": []},
    {"name": "Curry Paste", "category": "Condiments", "allergens": [("Shrimp", "may_contain")]},
    {"name": "Corn Tortilla", "category": "Bakery", "allergens": []},
    {"name": "Black Beans", "category": "Pantry", "allergens": []},
    {"name": "Avocado", "category": "Produce", "allergens": []},
]

RECIPES = [
    # Breakfast
    {"name": "Blueberry Oat Porridge", "cuisine_type": "American", "meal_type": "breakfast",
     "prep_time_minutes": 5, "cook_time_minutes": 10, "servings": 2, "difficulty_level": "easy", "calories": 320,
     "ingredients": [("Oats", 100, "g"), ("Milk", 300, "ml"), ("Blueberries", 80, "g")]},
    {"name": "Spinach Omelette", "cuisine_type": "French", "meal_type": "breakfast",
     "prep_time_minutes": 5, "cook_time_minutes": 8, "servings": 1, "difficulty_level": "easy", "calories": 280,
     "ingredients": [("Egg", 3, "pcs"), ("Spinach", 40, "g"), ("Butter", 10, "g")]},
    {"name": "Banana Rice Pudding", "cuisine_type": "Thai", "meal_type": "breakfast",
     "prep_time_minutes": 5, "cook_time_minutes": 20, "servings": 2, "difficulty_level": "easy", "calories": 350,
     "ingredients": [("Rice", 120, "g"), ("Coconut Milk", 200, "ml"), ("Banana", 2, "pcs")]},
    {"name": "Apple Almond Muesli", "cuisine_type": "Swiss", "meal_type": "breakfast",
     "prep_time_minutes": 10, "cook_time_minutes": 0, "servings": 2, "difficulty_level": "easy", "calories": 300,
     "ingredients": [("Oats", 80, "g"), ("Apple", 1, "pcs"), ("Almonds", 30, "g"), ("Milk", 200, "ml")]},
    # Lunch
    {"name": "Chickpea Avocado Salad", "cuisine_type": "Mediterranean", "meal_type": "lunch",
     "prep_time_minutes": 15, "cook_time_minutes": 0, "servings": 2, "difficulty_level": "easy", "calories": 420,
     "ingredients": [("Chickpeas", 240, "g"), ("Avocado", 1, "pcs"), ("Tomato", 2, "pcs"), ("Olive Oil", 15, "ml")]},
    {"name": "Black Bean Tacos", "cuisine_type": "Mexican", "meal_type": "lunch",
     "prep_time_minutes": 10, "cook_time_minutes": 10, "servings": 2, "difficulty_level": "easy", "calories": 480,
     "ingredients": [("Corn Tortilla", 6, "pcs"), ("Black Beans", 240, "g"), ("Avocado", 1, "pcs"), ("Lime", 1, "pcs")]},
    {"name": "Shrimp Fried Rice", "cuisine_type": "Chinese", "meal_type": "lunch",
     "prep_time_minutes": 10, "cook_time_minutes": 15, "servings": 2, "difficulty_level": "medium", "calories": 520,
     "ingredients": [("Rice", 200, "g"), ("Shrimp", 200, "g"), ("Egg", 2, "pcs"), ("Soy Sauce", 30, "ml")]},
    {"name": "Crab Cakes", "cuisine_type": "American", "meal_type": "lunch",
     "prep_time_minutes": 20, "cook_time_minutes": 10, "servings": 4, "difficulty_level": "medium", "calories": 450,
     "ingredients": [("Crab Meat", 400, "g"), ("Flour", 50, "g"), ("Egg", 1, "pcs")]},
    # Dinner
    {"name": "Spaghetti Pomodoro", "cuisine_type": "Italian", "meal_type": "dinner",
     "prep_time_minutes": 10, "cook_time_minutes": 20, "servings": 2, "difficulty_level": "easy", "calories": 610,
     "ingredients": [("Spaghetti", 200, "g"), ("Tomato", 4, "pcs"), ("Garlic", 2, "cloves"), ("Olive Oil", 20, "ml")]},
    {"name": "Thai Green Chicken Curry", "cuisine_type": "Thai", "meal_type": "dinner",
     "prep_time_minutes": 15, "cook_time_minutes": 25, "servings": 4, "difficulty_level": "medium", "calories": 650,
     "ingredients": [("Chicken Breast", 500, "g"), ("Curry Paste", 50, "g"), ("Coconut Milk", 400, "ml"), ("Rice", 300, "g")]},
    {"name": "Baked Salmon with Rice", "cuisine_type": "Nordic", "meal_type": "dinner",
     "prep_time_minutes": 10, "cook_time_minutes": 25, "servings": 2, "difficulty_level": "easy", "calories": 590,
     "ingredients": [("Salmon Fillet", 300, "g"), ("Rice", 150, "g"), ("Lime", 1, "pcs")]},
    {"name": "Beef Chilli", "cuisine_type": "Mexican", "meal_type": "dinner",
     "prep_time_minutes": 15, "cook_time_minutes": 60, "servings": 4, "difficulty_level": "medium", "calories": 640,
     "ingredients": [("Beef Mince", 500, "g"), ("Black Beans", 400, "g"), ("Tomato", 4, "pcs"), ("Onion", 1, "pcs")]},
    {"name": "Peanut Tofu Noodles", "cuisine_type": "Thai", "meal_type": "dinner",
     "prep_time_minutes": 15, "cook_time_minutes": 10, "servings": 2, "difficulty_level": "easy", "calories": 620,
     "ingredients": [("Rice Noodles", 200, "g"), ("Tofu", 200, "g"), ("Peanut Butter", 40, "g"), ("Lime", 1, "pcs")]},
    # Snack
    {"name": "Hummus", "cuisine_type": "Middle Eastern", "meal_type": "snack",
     "prep_time_minutes": 10, "cook_time_minutes": 0, "servings": 4, "difficulty_level": "easy", "calories": 180,
     "ingredients": [("Chickpeas", 240, "g"), ("Tahini", 30, "g"), ("Garlic", 1, "cloves"), ("Olive Oil", 15, "ml")]},
    {"name": "Apple Slices", "cuisine_type": "American", "meal_type": "snack",
     "prep_time_minutes": 2, "cook_time_minutes": 0, "servings": 1, "difficulty_level": "easy", "calories": 90,
     "ingredients": [("Apple", 1, "pcs")]},
    {"name": "Guacamole", "cuisine_type": "Mexican", "meal_type": "snack",
     "prep_time_minutes": 10, "cook_time_minutes": 0, "servings": 2, "difficulty_level": "easy", "calories": 160,
     "ingredients": [("Avocado", 2, "pcs"), ("Lime", 1, "pcs"), ("Onion", 0.5, "pcs"), ("Tomato", 1, "pcs")]},
]
