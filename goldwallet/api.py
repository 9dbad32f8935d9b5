from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware

from .admin import require_admin
from .backend import GoldWalletBackend
from .config import Settings, configure_logging
from .errors import (
    ConcurrencyConflictError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PriceNotConfiguredError,
    UserAlreadyExistsError,
    WalletServiceError,
)
from .models import (
    AdminOverview,
    CreateTransactionRequest,
    GoldPrice,
    LoginRequest,
    PaymentMethodInfo,
    ProcessTransactionRequest,
    RegisterRequest,
    SessionResponse,
    SetPriceRequest,
    Transaction,
    TransactionOrderRequest,
    TransactionResponse,
    TransactionStatus,
    UpdatePaymentMethodRequest,
    UpdateProfileRequest,
    User,
)

settings = Settings.from_env()
configure_logging(settings.log_level)

app = FastAPI(
    title="Gold Wallet API",
    description="Buy and sell digital gold at an admin-set price with admin-approved settlement",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

wallet_backend = GoldWalletBackend(settings)

ERROR_STATUS = [
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UserAlreadyExistsError, status.HTTP_409_CONFLICT),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (ConcurrencyConflictError, status.HTTP_409_CONFLICT),
    (InsufficientBalanceError, 422),
    (PriceNotConfiguredError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _http_error(e: WalletServiceError) -> HTTPException:
    for error_type, code in ERROR_STATUS:
        if isinstance(e, error_type):
            return HTTPException(status_code=code, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def get_backend() -> GoldWalletBackend:
    return wallet_backend


def get_current_user(
    x_session_token: Optional[str] = Header(default=None),
    backend: GoldWalletBackend = Depends(get_backend),
) -> User:
    user = backend.current_user(x_session_token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return user


def get_admin_user(user: User = Depends(get_current_user)) -> User:
    try:
        return require_admin(user)
    except PermissionDeniedError as e:
        raise _http_error(e)


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "gold-wallet"}


@app.post("/auth/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED, tags=["Auth"])
def register(request: RegisterRequest, backend: GoldWalletBackend = Depends(get_backend)) -> SessionResponse:
    try:
        return backend.register(request.name, request.email, request.phone)
    except WalletServiceError as e:
        raise _http_error(e)


@app.post("/auth/login", response_model=SessionResponse, tags=["Auth"])
def login(request: LoginRequest, backend: GoldWalletBackend = Depends(get_backend)) -> SessionResponse:
    try:
        return backend.login(request.email)
    except WalletServiceError as e:
        raise _http_error(e)


@app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT, tags=["Auth"])
def logout(
    x_session_token: Optional[str] = Header(default=None),
    backend: GoldWalletBackend = Depends(get_backend),
) -> Response:
    if x_session_token:
        backend.logout(x_session_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/me", response_model=User, tags=["Users"])
def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@app.patch("/me", response_model=User, tags=["Users"])
def update_me(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> User:
    try:
        return backend.update_profile(user.id, name=request.name, phone=request.phone)
    except WalletServiceError as e:
        raise _http_error(e)


@app.get("/price", response_model=GoldPrice, tags=["Price"])
def get_price(backend: GoldWalletBackend = Depends(get_backend)) -> GoldPrice:
    try:
        return backend.get_current_price()
    except PriceNotConfiguredError as e:
        raise _http_error(e)


@app.get("/price/history", response_model=list[GoldPrice], tags=["Price"])
def get_price_history(limit: int = Query(30, ge=1), backend: GoldWalletBackend = Depends(get_backend)) -> list[GoldPrice]:
    return backend.price_history(limit)


@app.put("/price", response_model=GoldPrice, tags=["Price"])
def set_price(
    request: SetPriceRequest,
    admin: User = Depends(get_admin_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> GoldPrice:
    try:
        return backend.set_price(request.price_per_gram, admin.id)
    except InvalidInputError as e:
        raise _http_error(e)


@app.get("/payment-methods", response_model=list[PaymentMethodInfo], tags=["Payment Methods"])
def list_payment_methods(backend: GoldWalletBackend = Depends(get_backend)) -> list[PaymentMethodInfo]:
    return backend.list_payment_methods()


@app.put("/payment-methods/{method}", response_model=PaymentMethodInfo, tags=["Payment Methods"])
def update_payment_method(
    method: str,
    request: UpdatePaymentMethodRequest,
    admin: User = Depends(get_admin_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> PaymentMethodInfo:
    try:
        return backend.update_payment_method(method, request.details)
    except WalletServiceError as e:
        raise _http_error(e)


@app.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED, tags=["Transactions"])
def create_transaction(
    request: TransactionOrderRequest,
    user: User = Depends(get_current_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> TransactionResponse:
    try:
        return backend.create_transaction(CreateTransactionRequest(user_id=user.id, **request.model_dump()))
    except WalletServiceError as e:
        raise _http_error(e)


@app.get("/transactions", response_model=list[Transaction], tags=["Transactions"])
def list_transactions(
    status_filter: Optional[TransactionStatus] = None,
    limit: Optional[int] = Query(None, ge=1),
    user: User = Depends(get_current_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> list[Transaction]:
    user_id = None if user.is_admin else user.id
    return backend.list_transactions(user_id=user_id, status=status_filter, limit=limit)


@app.get("/transactions/{txn_id}", response_model=Transaction, tags=["Transactions"])
def get_transaction(
    txn_id: str,
    user: User = Depends(get_current_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> Transaction:
    try:
        txn = backend.settlement.get_transaction(txn_id)
    except NotFoundError as e:
        raise _http_error(e)
    if txn.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Transaction {txn_id} not found")
    return txn


@app.post("/transactions/{txn_id}/process", response_model=TransactionResponse, tags=["Admin"])
def process_transaction(
    txn_id: str,
    request: ProcessTransactionRequest,
    admin: User = Depends(get_admin_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> TransactionResponse:
    try:
        return backend.process_transaction(txn_id, request.action)
    except WalletServiceError as e:
        raise _http_error(e)


@app.get("/admin/pending", response_model=list[Transaction], tags=["Admin"])
def list_pending(
    admin: User = Depends(get_admin_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> list[Transaction]:
    return backend.admin.list_pending()


@app.get("/admin/overview", response_model=AdminOverview, tags=["Admin"])
def admin_overview(
    recent_limit: int = Query(10, ge=1),
    admin: User = Depends(get_admin_user),
    backend: GoldWalletBackend = Depends(get_backend),
) -> AdminOverview:
    try:
        return backend.admin_overview(admin, recent_limit)
    except WalletServiceError as e:
        raise _http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
