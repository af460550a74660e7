import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.auth import fastapi_users, auth_backend
from core.config import settings
from core.errors import InventoryError
from db.database import create_db_and_tables
from routers.ingredient_movements import router as ingredient_movements_router
from routers.ingredient_stock import router as ingredient_stock_router
from routers.ingredients import router as ingredients_router
from routers.products import router as products_router
from routers.stock import router as stock_router
from routers.stock_movements import router as stock_movements_router
from routers.users import router as users_router
from schemas.users import UserRead, UserCreate, UserUpdate

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    logger.info("Inventory API started")
    yield


app = FastAPI(
    title="Restaurant Inventory API",
    description="Ingredient and product stock ledgers, batch registry and stock status",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Subjects
app.include_router(ingredients_router, prefix="/ingredients", tags=["ingredients"])
app.include_router(products_router, prefix="/products", tags=["products"])

# Ledgers and stock
app.include_router(ingredient_movements_router, prefix="/ingredient-movements", tags=["ingredient-movements"])
app.include_router(stock_movements_router, prefix="/stock-movements", tags=["stock-movements"])
app.include_router(stock_router, prefix="/stock", tags=["stock"])
app.include_router(ingredient_stock_router, prefix="/ingredient-stock", tags=["ingredient-stock"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
