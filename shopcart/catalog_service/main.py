# shopcart/catalog_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Catalog Service (dev mock)")


# (shop_id, product_id, variant_id) -> price + MOQ
VARIANTS = {
    ("shop-1", "keyboard", "keyboard-black"): {"price": {"amount": "199.99", "currencyCode": "USD"}, "minOrderQuantity": 1},
    ("shop-1", "keyboard", "keyboard-white"): {"price": {"amount": "209.99", "currencyCode": "USD"}, "minOrderQuantity": 1},
    ("shop-1", "mouse", "mouse-std"): {"price": {"amount": "49.50", "currencyCode": "USD"}, "minOrderQuantity": 1},
    ("shop-1", "cable", "cable-1m"): {"price": {"amount": "4.99", "currencyCode": "USD"}, "minOrderQuantity": 5},
}


@app.get("/shops/{shop_id}/products/{product_id}/variants/{variant_id}")
def get_variant(shop_id: str, product_id: str, variant_id: str):
    variant = VARIANTS.get((shop_id, product_id, variant_id))
    if not variant:
        raise HTTPException(status_code=404, detail="Product configuration not found")
    return variant
