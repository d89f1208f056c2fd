# model/assistant.py
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


class Product(BaseModel):
    id: str
    name: str
    description: str = ""
    price: float
    category: str
    imageUrl: str = ""
    badge: Optional[str] = None
    details: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    sizes: list[str] = Field(default_factory=list)


class CartItem(BaseModel):
    id: str
    name: str
    price: float
    quantity: int = Field(ge=1)
    imageUrl: Optional[str] = None


class KnowledgeEntry(BaseModel):
    query: str
    answer: str


class FunctionCall(BaseModel):
    name: str
    arguments: str = "{}"  # JSON-encoded, as sent by the realtime API
    call_id: str


class FunctionCallRequest(FunctionCall):
    sessionId: str = Field(min_length=1)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    id: str
    products: Optional[list[str]] = None


class FunctionCallResult(BaseModel):
    call_id: str
    output: dict[str, Any]
    # Navigation hint for the caller (e.g. initiate_checkout)
    redirect: Optional[str] = None
