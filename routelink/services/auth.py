"""Login / signup / identity check; successful auth lands in the SessionStore."""

from __future__ import annotations

from routelink.api.gateway import ApiGateway
from routelink.api.schemas import AuthResponse, LoginRequest, SignupRequest, UserResponse
from routelink.domain.entities import Identity, Session
from routelink.domain.enums import Role
from routelink.domain.errors import ValidationError
from routelink.services.session import SessionStore


class AuthClient:
    def __init__(self, gateway: ApiGateway, store: SessionStore):
        self.gateway = gateway
        self.store = store

    async def login(self, email: str, password: str) -> Session:
        if not email.strip() or not password:
            raise ValidationError("Email and password are required")
        res: AuthResponse = await self.gateway.post(
            "/auth/login",
            LoginRequest(email=email.strip(), password=password),
            response_model=AuthResponse,
        )
        return self.store.set_session(res.token, res.to_identity())

    async def signup(self, name: str, email: str, password: str, role: Role) -> Session:
        if not name.strip() or not email.strip() or not password:
            raise ValidationError("Name, email and password are required")
        res: AuthResponse = await self.gateway.post(
            "/auth/signup",
            SignupRequest(name=name.strip(), email=email.strip(), password=password, role=role),
            response_model=AuthResponse,
        )
        return self.store.set_session(res.token, res.to_identity())

    async def me(self) -> Identity:
        """Server-side view of the current identity."""
        res: UserResponse = await self.gateway.get("/auth/me", response_model=UserResponse)
        return res.to_identity()

    def logout(self) -> None:
        self.store.clear_session()
