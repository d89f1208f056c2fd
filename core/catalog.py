# core/catalog.py
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional, Sequence
from model.assistant import KnowledgeEntry, Product

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent / "data"

CATEGORY_SCORE = 10
NAME_MATCH_SCORE = 20
DESCRIPTION_MATCH_SCORE = 5
KEYWORD_NAME_SCORE = 3
KEYWORD_DESCRIPTION_SCORE = 1


@lru_cache(maxsize=1)
def load_products() -> tuple[Product, ...]:
    raw = json.loads((_DATA_DIR / "products.json").read_text(encoding="utf-8"))
    products = tuple(Product.model_validate(p) for p in raw)
    logger.info("catalog.products.loaded count=%d", len(products))
    return products


@lru_cache(maxsize=1)
def load_knowledge_base() -> tuple[KnowledgeEntry, ...]:
    raw = json.loads((_DATA_DIR / "knowledge_base.json").read_text(encoding="utf-8"))
    return tuple(KnowledgeEntry.model_validate(e) for e in raw)


def find_product(product_id: str, products: Optional[Sequence[Product]] = None) -> Optional[Product]:
    for p in products if products is not None else load_products():
        if p.id == product_id:
            return p
    return None


def score_product(product: Product, query: str, category: Optional[str] = None) -> int:
    q = query.lower()
    name = product.name.lower()
    description = (product.description or "").lower()
    keywords = [k for k in q.split() if len(k) > 2]

    score = 0
    if category and product.category.lower() == category.lower():
        score += CATEGORY_SCORE
    if q in name:
        score += NAME_MATCH_SCORE
    if q in description:
        score += DESCRIPTION_MATCH_SCORE
    for keyword in keywords:
        if keyword in name:
            score += KEYWORD_NAME_SCORE
        if keyword in description:
            score += KEYWORD_DESCRIPTION_SCORE
    return score


def search_products(
    query: str,
    category: Optional[str] = None,
    max_results: int = 4,
    products: Optional[Sequence[Product]] = None,
) -> list[Product]:
    """
    Relevance search over the catalog.
    Products scoring zero are dropped; ties keep catalog order.
    """
    pool = products if products is not None else load_products()
    scored = [(score_product(p, query, category), i, p) for i, p in enumerate(pool)]
    ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: (-s[0], s[1]))
    return [p for _, _, p in ranked[: max(0, max_results)]]


def lookup_knowledge(
    query: str, entries: Optional[Sequence[KnowledgeEntry]] = None
) -> Optional[str]:
    q = (query or "").lower()
    for entry in entries if entries is not None else load_knowledge_base():
        if q in entry.query.lower():
            return entry.answer
    return None
