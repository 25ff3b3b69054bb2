"""
Module: stock_kernel.models.staff_account
Responsibility: Staff credentials used for manager re-validation at cash
    closure.  Passwords are stored only as PBKDF2-SHA256 hashes
    (services/authorizer.py).
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import AwareDateTime, Base


class StaffAccount(Base):
    __tablename__ = "staff_accounts"

    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # "pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>"
    password_hash: Mapped[str] = mapped_column(
        String(300),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        AwareDateTime(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StaffAccount {self.username} role={self.role}>"
