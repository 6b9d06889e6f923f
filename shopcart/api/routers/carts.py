# shopcart/api/routers/carts.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from shopcart.api.dependencies import (
    get_account_id,
    get_cart_service,
    get_reconciliation_service,
)
from shopcart.domain.schemas import (
    AddCartItemsIn,
    AddCartItemsPayload,
    CartOut,
    CreateCartIn,
    CreateCartPayload,
    ErrorOut,
    ReconcileCartsIn,
    ReconcileCartsPayload,
    RemoveCartItemsIn,
    RemoveCartItemsPayload,
    UpdateCartItemsQuantityIn,
    UpdateCartItemsQuantityPayload,
)
from shopcart.exceptions import PermissionDeniedError
from shopcart.services.cart_service import CartService
from shopcart.services.reconciliation_service import ReconciliationService

router = APIRouter(
    tags=["carts"],
    responses={
        400: {"model": ErrorOut},
        403: {"model": ErrorOut},
        404: {"model": ErrorOut},
        503: {"model": ErrorOut},
    },
)


@router.post("/carts", response_model=CreateCartPayload)
def create_cart(
    payload: CreateCartIn,
    account_id: Optional[str] = Depends(get_account_id),
    svc: CartService = Depends(get_cart_service),
):
    result = svc.create_cart(payload.shop_id, payload.items, account_id=account_id)
    return {**result, "client_mutation_id": payload.client_mutation_id}


@router.post("/carts/reconcile", response_model=ReconcileCartsPayload)
def reconcile_carts(
    payload: ReconcileCartsIn,
    account_id: Optional[str] = Depends(get_account_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
):
    result = svc.reconcile_carts(
        anonymous_cart_id=payload.anonymous_cart_id,
        anonymous_token=payload.anonymous_cart_token,
        account_id=account_id,
        shop_id=payload.shop_id,
        mode=payload.mode,
    )
    return {**result, "client_mutation_id": payload.client_mutation_id}


@router.get("/carts/{cart_id}", response_model=CartOut)
def get_anonymous_cart(
    cart_id: str,
    token: Optional[str] = Header(None, alias="X-Cart-Token"),
    sort_by: str = Query("added_at"),
    descending: bool = Query(False),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_anonymous_cart(cart_id, token, sort_by=sort_by, descending=descending)


@router.get("/accounts/me/carts/{shop_id}", response_model=CartOut)
def get_account_cart(
    shop_id: str,
    sort_by: str = Query("added_at"),
    descending: bool = Query(False),
    account_id: Optional[str] = Depends(get_account_id),
    svc: CartService = Depends(get_cart_service),
):
    if not account_id:
        raise PermissionDeniedError("Authentication required")
    return svc.get_account_cart(account_id, shop_id, sort_by=sort_by, descending=descending)


@router.post("/carts/{cart_id}/items", response_model=AddCartItemsPayload)
def add_cart_items(
    cart_id: str,
    payload: AddCartItemsIn,
    account_id: Optional[str] = Depends(get_account_id),
    svc: CartService = Depends(get_cart_service),
):
    result = svc.add_cart_items(cart_id, payload.items, token=payload.token, account_id=account_id)
    return {**result, "client_mutation_id": payload.client_mutation_id}


@router.post("/carts/{cart_id}/items/remove", response_model=RemoveCartItemsPayload)
def remove_cart_items(
    cart_id: str,
    payload: RemoveCartItemsIn,
    account_id: Optional[str] = Depends(get_account_id),
    svc: CartService = Depends(get_cart_service),
):
    result = svc.remove_cart_items(
        cart_id, payload.cart_item_ids, token=payload.token, account_id=account_id
    )
    return {**result, "client_mutation_id": payload.client_mutation_id}


@router.patch("/carts/{cart_id}/items", response_model=UpdateCartItemsQuantityPayload)
def update_cart_items_quantity(
    cart_id: str,
    payload: UpdateCartItemsQuantityIn,
    account_id: Optional[str] = Depends(get_account_id),
    svc: CartService = Depends(get_cart_service),
):
    result = svc.update_cart_items_quantity(
        cart_id, payload.items, token=payload.token, account_id=account_id
    )
    return {**result, "client_mutation_id": payload.client_mutation_id}
