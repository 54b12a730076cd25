"""Shared helpers for tests: settings, in-memory database, fake mailer and clock."""

from datetime import UTC, datetime, timedelta

from pydantic import SecretStr
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.tokens import TokenService
from app.models import Base
from app.services.accounts import AccountService

TEST_SECRET = "test-secret-key-for-unit-tests-0123456789"


def make_settings(**overrides: object) -> Settings:
    """Settings with a fixed secret, cheap bcrypt and no .env file."""
    values: dict[str, object] = {
        "JWT_SECRET": SecretStr(TEST_SECRET),
        "BCRYPT_ROUNDS": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session_factory() -> sessionmaker:
    """In-memory SQLite shared across threads, with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


class RecordingMailer:
    """OtpMailer that records every send and returns a configurable result."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[tuple[str, str, str]] = []

    def send_otp_email(self, to_email: str, otp: str, username: str) -> bool:
        self.sent.append((to_email, otp, username))
        return self.succeed

    @property
    def last_otp(self) -> str:
        return self.sent[-1][1]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_account_service(
    session,
    settings: Settings | None = None,
    mailer: RecordingMailer | None = None,
    clock: FakeClock | None = None,
) -> AccountService:
    settings = settings or make_settings()
    return AccountService(
        session,
        settings,
        mailer or RecordingMailer(),
        TokenService.from_settings(settings),
        clock=clock or FakeClock(),
    )
