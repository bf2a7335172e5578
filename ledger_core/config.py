# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field


class LedgerEngineConfig(BaseModel):
    """
    Configuration for wiring the ledger to a Firestore project.
    Decouples the ledger from environment variables.
    """

    # Firebase
    firebase_app_name: str = Field("numisma-ledger", description="Name of the firebase_admin app to create")
    credentials_path: Optional[str] = Field(
        None, description="Service account JSON; application default credentials when omitted"
    )
    project_id: Optional[str] = Field(None, description="GCP project id override")

    # Transactions
    max_transaction_attempts: int = Field(5, ge=1, le=20, description="Optimistic commit attempts")

    @classmethod
    def from_env(cls) -> "LedgerEngineConfig":
        data: dict = {}
        if os.getenv("LEDGER_FIREBASE_APP_NAME"):
            data["firebase_app_name"] = os.environ["LEDGER_FIREBASE_APP_NAME"]
        if os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
            data["credentials_path"] = os.environ["GOOGLE_APPLICATION_CREDENTIALS"]
        if os.getenv("LEDGER_PROJECT_ID"):
            data["project_id"] = os.environ["LEDGER_PROJECT_ID"]
        if os.getenv("LEDGER_MAX_TRANSACTION_ATTEMPTS"):
            data["max_transaction_attempts"] = os.environ["LEDGER_MAX_TRANSACTION_ATTEMPTS"]
        return cls(**data)
