# controller/assistant_controller.py
from typing import List
from fastapi import APIRouter, Depends, Query
from controller.controller_dependencies import get_assistant_service, rate_limit
from model.assistant import CartItem, FunctionCallRequest, FunctionCallResult
from service.assistant_service import AssistantService
from util.constants import InternalURIs

assistant_router = APIRouter(tags=["assistant"], dependencies=[Depends(rate_limit)])


@assistant_router.get(InternalURIs.REALTIME_SESSION)
async def create_realtime_session(
    voice: str = Query(default="alloy"),
    service: AssistantService = Depends(get_assistant_service),
) -> dict:
    return await service.create_realtime_session(voice)


@assistant_router.post(InternalURIs.ASSISTANT_FUNCTION_CALL, response_model=FunctionCallResult)
async def assistant_function_call(
    payload: FunctionCallRequest,
    service: AssistantService = Depends(get_assistant_service),
) -> FunctionCallResult:
    return await service.handle_function_call(payload)


@assistant_router.get(InternalURIs.CART, response_model=List[CartItem])
async def get_cart(
    session_id: str,
    service: AssistantService = Depends(get_assistant_service),
) -> List[CartItem]:
    return await service.get_cart(session_id)
