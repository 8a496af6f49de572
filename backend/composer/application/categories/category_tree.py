from typing import Any, Dict, List
from composer.models.category import Category
from composer.normalizers.category import normalize_tree


def category_tree() -> List[Dict[str, Any]]:
    return normalize_tree(Category.query.all())
