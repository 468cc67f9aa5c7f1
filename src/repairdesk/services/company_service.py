from __future__ import annotations

import dataclasses

from ..domain import AppState, BankAccount
from ..store import get_by_id, new_id, remove_by_id, replace_by_id
from .errors import ValidationError


def _check_account(bank_name: str, account_holder: str, account_number: str) -> None:
    if not bank_name.strip() or not account_holder.strip() or not account_number.strip():
        raise ValidationError("Bank name, holder and account number are required.")


def add_bank_account(
    state: AppState, *, bank_name: str, account_holder: str, account_number: str
) -> tuple[AppState, BankAccount]:
    _check_account(bank_name, account_holder, account_number)
    account = BankAccount(
        id=new_id("ba"),
        bank_name=bank_name.strip(),
        account_holder=account_holder.strip(),
        account_number=account_number.strip(),
    )
    return dataclasses.replace(state, bank_accounts=state.bank_accounts + (account,)), account


def update_bank_account(
    state: AppState, account_id: str, *, bank_name: str, account_holder: str, account_number: str
) -> tuple[AppState, BankAccount]:
    original = get_by_id(state.bank_accounts, account_id, "bank account")
    _check_account(bank_name, account_holder, account_number)
    updated = dataclasses.replace(
        original,
        bank_name=bank_name.strip(),
        account_holder=account_holder.strip(),
        account_number=account_number.strip(),
    )
    return dataclasses.replace(state, bank_accounts=replace_by_id(state.bank_accounts, updated)), updated


def delete_bank_account(state: AppState, account_id: str) -> AppState:
    get_by_id(state.bank_accounts, account_id, "bank account")
    return dataclasses.replace(state, bank_accounts=remove_by_id(state.bank_accounts, account_id))


def update_company_info(state: AppState, **changes) -> AppState:
    allowed = {f.name for f in dataclasses.fields(state.company_info)}
    bad = set(changes) - allowed
    if bad:
        raise ValidationError(f"Unknown company fields: {sorted(bad)}")
    return dataclasses.replace(state, company_info=dataclasses.replace(state.company_info, **changes))
