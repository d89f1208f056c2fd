# core/function_calls.py
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence
from core.catalog import find_product, load_knowledge_base, load_products, lookup_knowledge, search_products
from model.assistant import CartItem, FunctionCall, FunctionCallResult, KnowledgeEntry, Product
from util.constants import InternalURIs

logger = logging.getLogger(__name__)


class CartStore(Protocol):
    async def load(self) -> List[CartItem]: ...

    async def update(
        self, change: Callable[[List[CartItem]], List[CartItem]]
    ) -> List[CartItem]:
        """Apply `change` to the stored items atomically and return the result."""
        ...


Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def add_item(items: List[CartItem], product: Product, quantity: int) -> List[CartItem]:
    """Bump the quantity of an existing line or append a new one."""
    out: List[CartItem] = []
    merged = False
    for item in items:
        if item.id == product.id:
            item = item.model_copy(update={"quantity": item.quantity + quantity})
            merged = True
        out.append(item)
    if not merged:
        out.append(
            CartItem(
                id=product.id,
                name=product.name,
                price=product.price,
                quantity=quantity,
                imageUrl=product.imageUrl or None,
            )
        )
    return out


class FunctionCallDispatcher:
    """
    Executes the assistant's tool calls against the catalog, knowledge base
    and a cart. Never raises: bad arguments become {"error": ...} outputs so
    the model always gets an answer for its call_id.
    """

    def __init__(
        self,
        cart: CartStore,
        products: Optional[Sequence[Product]] = None,
        knowledge: Optional[Sequence[KnowledgeEntry]] = None,
    ) -> None:
        self._cart = cart
        self._products = products if products is not None else load_products()
        self._knowledge = knowledge if knowledge is not None else load_knowledge_base()
        self._redirect: Optional[str] = None
        self._handlers: Dict[str, Handler] = {
            "recommend_products": self._recommend_products,
            "add_to_cart": self._add_to_cart,
            "initiate_checkout": self._initiate_checkout,
            "start_visualization": self._start_visualization,
            "add_product_to_visualization": self._add_product_to_visualization,
            "change_product_color": self._change_product_color,
            "get_knowledge_base": self._get_knowledge_base,
        }

    async def dispatch(self, call: FunctionCall) -> FunctionCallResult:
        self._redirect = None
        handler = self._handlers.get(call.name)
        if handler is None:
            logger.warning("assistant.fn.unknown name=%s", call.name)
            return FunctionCallResult(call_id=call.call_id, output={"error": "Unknown function"})

        try:
            args = json.loads(call.arguments or "{}")
            if not isinstance(args, dict):
                raise ValueError("arguments must be a JSON object")
            output = await handler(args)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning("assistant.fn.failed name=%s err=%s", call.name, e)
            output = {"error": "Function execution failed"}

        logger.info("assistant.fn name=%s call=%s", call.name, call.call_id)
        return FunctionCallResult(call_id=call.call_id, output=output, redirect=self._redirect)

    # ---------------- handlers ----------------

    async def _recommend_products(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = str(args["query"])
        found = search_products(
            query, args.get("category"), int(args.get("max", 4)), self._products
        )
        return {
            "product_ids": [p.id for p in found],
            "success": bool(found),
            "message": f'Found {len(found)} products matching "{query}"'
            if found
            else f'No products found matching "{query}"',
        }

    async def _add_to_cart(self, args: Dict[str, Any]) -> Dict[str, Any]:
        product_id = str(args["product_id"])
        quantity = int(args.get("quantity", 1))
        product = find_product(product_id, self._products)
        if product is None or quantity < 1:
            logger.warning("assistant.cart.unknown product=%s", product_id)
            return {"success": False, "message": f"Failed to add product {product_id} to cart"}

        await self._cart.update(lambda items: add_item(items, product, quantity))
        return {"success": True, "message": f"Added {quantity} of product {product_id} to cart"}

    async def _initiate_checkout(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self._redirect = InternalURIs.CHECKOUT_PAGE
        return {"success": True, "message": "Redirecting to checkout"}

    async def _start_visualization(self, args: Dict[str, Any]) -> Dict[str, Any]:
        ids = ", ".join(str(i) for i in args["product_ids"])
        return {"success": True, "message": f"Starting visualization with products: {ids}"}

    async def _add_product_to_visualization(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": True, "message": f"Added product {args['product_id']} to visualization"}

    async def _change_product_color(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "success": True,
            "message": f"Changed color of product {args['product_id']} to {args['color']}",
        }

    async def _get_knowledge_base(self, args: Dict[str, Any]) -> Dict[str, Any]:
        answer = lookup_knowledge(str(args["query"]), self._knowledge)
        return {"answer": answer or "No information found."}
