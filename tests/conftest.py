import itertools
from typing import AsyncGenerator, Dict, Iterable, List, Optional, Tuple

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from app.api.routes import auth, health, portfolio
from app.domain.exceptions import AuthError, InvalidSymbolError, QuoteFetchError, StoreError
from app.domain.models import Holding, Identity
from app.infrastructure.db.database import build_engine, build_session_factory, init_db
from app.infrastructure.db.portfolio_store import SqlPortfolioStore
from app.realtime.runtime import ValuationEngine


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------

class StubQuoteProvider:
    """Quote provider with fixed prices; symbols in `failing` raise, others are unknown."""

    def __init__(self, prices: Optional[Dict[str, float]] = None, failing: Iterable[str] = ()):
        self.prices = dict(prices or {})
        self.failing = set(failing)
        self.configured = True
        self.requests: List[List[str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def get_quote(self, symbol: str) -> float:
        if symbol in self.failing:
            raise QuoteFetchError(symbol, "HTTP 500")
        price = self.prices.get(symbol)
        if not price or price <= 0:
            raise InvalidSymbolError(symbol)
        return price

    async def get_quotes(self, symbols):
        self.requests.append(list(symbols))
        results = {}
        for symbol in symbols:
            try:
                results[symbol] = await self.get_quote(symbol)
            except QuoteFetchError as exc:
                results[symbol] = exc
        return results

    async def is_valid_symbol(self, symbol: str) -> bool:
        try:
            await self.get_quote(symbol)
        except InvalidSymbolError:
            return False
        return True


class InMemoryPortfolioStore:
    """Row store keyed by owner; operations named in `failing` raise StoreError."""

    def __init__(self):
        self.holdings: Dict[str, Dict[str, Holding]] = {}
        self.buying_power: Dict[str, float] = {}
        self.failing: set = set()
        self.calls: List[str] = []
        self._ids = itertools.count(1)

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise StoreError(f"{operation} failed")

    def seed(self, owner: str, rows: Iterable[Tuple[str, float]], buying_power: Optional[float] = None):
        for symbol, shares in rows:
            self.holdings.setdefault(owner, {})[symbol] = Holding(
                id=next(self._ids), symbol=symbol, shares=shares
            )
        if buying_power is not None:
            self.buying_power[owner] = buying_power

    async def select_holdings(self, owner):
        self._record("select_holdings")
        return list(self.holdings.get(owner, {}).values())

    async def insert_holding(self, owner, symbol, shares):
        self._record("insert_holding")
        rows = self.holdings.setdefault(owner, {})
        if symbol in rows:
            raise StoreError("duplicate key value violates unique constraint")
        holding = Holding(id=next(self._ids), symbol=symbol, shares=shares)
        rows[symbol] = holding
        return holding

    async def insert_holdings(self, owner, rows):
        self._record("insert_holdings")
        rows = list(rows)
        for symbol, shares in rows:
            self.holdings.setdefault(owner, {})[symbol] = Holding(
                id=next(self._ids), symbol=symbol, shares=shares
            )
        return len(rows)

    async def update_holding(self, owner, symbol, shares):
        self._record("update_holding")
        rows = self.holdings.get(owner, {})
        if symbol not in rows:
            raise StoreError("update_holding failed: no such holding")
        rows[symbol] = rows[symbol].with_shares(shares)

    async def delete_holding(self, owner, symbol):
        self._record("delete_holding")
        if self.holdings.get(owner, {}).pop(symbol, None) is None:
            raise StoreError("delete_holding failed: no such holding")

    async def delete_all_holdings(self, owner):
        self._record("delete_all_holdings")
        self.holdings.pop(owner, None)

    async def select_buying_power(self, owner):
        self._record("select_buying_power")
        return self.buying_power.get(owner)

    async def upsert_buying_power(self, owner, buying_power):
        self._record("upsert_buying_power")
        self.buying_power[owner] = buying_power


class StubIdentityClient:
    def __init__(self, users: Dict[str, Identity]):
        self.users = users
        self.magic_links: List[str] = []
        self.signed_out: List[str] = []

    async def get_identity(self, access_token: str) -> Identity:
        identity = self.users.get(access_token)
        if identity is None:
            raise AuthError("Invalid session")
        return identity

    async def send_magic_link(self, email: str) -> None:
        self.magic_links.append(email)

    async def verify_otp(self, email: str, token: str):
        if token != "123456":
            raise AuthError("Token has expired or is invalid")
        identity = next(i for i in self.users.values() if i.email == email)
        return {
            "access_token": f"token-{identity.user_id}",
            "refresh_token": "refresh",
            "expires_in": 3600,
            "identity": identity,
        }

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


ALICE = Identity(user_id="alice", email="alice@example.com")
BOB = Identity(user_id="bob", email="bob@example.com")


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture()
def clock():
    ticks = itertools.count(1_760_000_000_000, 60_000)
    return lambda: next(ticks)


@pytest.fixture()
def quote_provider() -> StubQuoteProvider:
    return StubQuoteProvider({"AAPL": 150.0, "MSFT": 300.0, "TSLA": 200.0})


@pytest.fixture()
def memory_store() -> InMemoryPortfolioStore:
    return InMemoryPortfolioStore()


@pytest.fixture()
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def sql_store(db_engine) -> SqlPortfolioStore:
    return SqlPortfolioStore(build_session_factory(db_engine))


@pytest.fixture()
def valuation_engine(quote_provider, sql_store, clock) -> ValuationEngine:
    return ValuationEngine(quote_provider, sql_store, clock=clock)


@pytest.fixture()
def identity_client() -> StubIdentityClient:
    return StubIdentityClient({"token-alice": ALICE, "token-bob": BOB})


@pytest.fixture()
async def app(valuation_engine, identity_client) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
    app.state.valuation_engine = valuation_engine
    app.state.identity_client = identity_client
    app.state.poll_scheduler = None
    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": "Bearer token-alice"},
    ) as ac:
        yield ac
