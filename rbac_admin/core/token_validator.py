"""
Token validation seam for issuer-based auth strategies.

The local JWT issuer is the active strategy; external strategies can be
registered without changing call sites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from joserfc import jwt as jose_jwt
from joserfc.jwk import OctKey
from joserfc.errors import BadSignatureError, DecodeError, ExpiredTokenError, InvalidTokenError, JoseError
import structlog

from rbac_admin.core.exceptions import AuthenticationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class TokenValidationResult:
    subject: str
    session_id: Optional[str]
    claims: dict
    issuer: str


class TokenValidationStrategy(ABC):
    @abstractmethod
    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        raise NotImplementedError


class LocalJWTValidationStrategy(TokenValidationStrategy):
    def __init__(self, secret_key: str, algorithm: str, issuer: str) -> None:
        self._jwt_key = OctKey.import_key(secret_key)
        self._algorithm = algorithm
        self._issuer = issuer
        self._claims_registry = jose_jwt.JWTClaimsRegistry(
            exp={"essential": True},
            sub={"essential": True},
        )

    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        try:
            token_obj = jose_jwt.decode(token, self._jwt_key, algorithms=[self._algorithm])
            self._claims_registry.validate(token_obj.claims)
        except ExpiredTokenError:
            logger.info("Token expired")
            raise AuthenticationError("Token expired")
        except (BadSignatureError, DecodeError, InvalidTokenError, JoseError, ValueError) as exc:
            logger.warning("JWT verification failed", error=str(exc))
            raise AuthenticationError("Could not validate credentials")

        payload = token_obj.claims
        if payload.get("type") != token_type:
            logger.warning("Invalid token type", expected=token_type, actual=payload.get("type"))
            raise AuthenticationError("Invalid token type")

        issuer = payload.get("iss") or self._issuer
        logger.debug("Token verified", subject=payload["sub"], issuer=issuer, type=token_type)
        return TokenValidationResult(
            subject=str(payload["sub"]),
            session_id=payload.get("sid"),
            claims=dict(payload),
            issuer=issuer,
        )


class IssuerAwareTokenValidator:
    """
    Strategy router for token validation by issuer.

    Only the local strategy ships; ``external_strategies`` maps an issuer
    name to an additional validator.
    """

    def __init__(
        self,
        *,
        active_issuer: str,
        trusted_issuers: list[str],
        local_strategy: TokenValidationStrategy,
        external_strategies: Optional[dict[str, TokenValidationStrategy]] = None,
    ) -> None:
        self._active_issuer = active_issuer
        self._trusted_issuers = set(trusted_issuers)
        self._strategies = {"local": local_strategy, **(external_strategies or {})}

    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        strategy = self._strategies.get(self._active_issuer)
        if strategy is None:
            logger.error("Unsupported active auth issuer", active_issuer=self._active_issuer)
            raise RuntimeError(f"Unsupported authentication issuer strategy: {self._active_issuer}")

        result = strategy.validate(token, token_type=token_type)
        if self._trusted_issuers and result.issuer not in self._trusted_issuers:
            logger.warning(
                "Token issuer is not trusted",
                issuer=result.issuer,
                trusted=sorted(self._trusted_issuers),
            )
            raise AuthenticationError("Untrusted token issuer")

        return result
